"""
Engine error kinds.

Services raise these; routes translate them into HTTPException with the
carried status code and structured detail.
"""
from typing import Any, Dict, List, Optional


class EngineError(Exception):
    """Base class for errors raised by the bracket engine"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self) -> Any:
        return self.message


class ValidationError(EngineError):
    """Bad input: missing name, invalid size, non-positive counts"""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def detail(self) -> Any:
        if self.field is None:
            return self.message
        return {"message": self.message, "field": self.field}


class ConflictError(EngineError):
    """The request collides with existing state and needs a human decision"""

    status_code = 409

    def __init__(
        self,
        message: str,
        conflicts: Optional[List[Dict[str, Any]]] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.conflicts = conflicts or []
        self.context = context

    def detail(self) -> Any:
        body: Dict[str, Any] = {"message": self.message}
        if self.conflicts:
            body["conflicts"] = self.conflicts
        body.update(self.context)
        return body


class StateError(EngineError):
    """Operation is not valid for the current state (caller misuse)"""

    status_code = 400


class NotFoundError(EngineError):
    status_code = 404
