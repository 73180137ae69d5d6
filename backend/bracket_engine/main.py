import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bracket_engine.database import init_db
from bracket_engine.routes import brackets, events, queue, runtime, seeding, teams

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Bracket Engine API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(events.router, prefix="/api", tags=["events"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
app.include_router(seeding.router, prefix="/api", tags=["seeding"])
app.include_router(brackets.router, prefix="/api", tags=["brackets"])
# Game runtime (start + results + advancement)
app.include_router(runtime.router, prefix="/api", tags=["runtime"])
app.include_router(queue.router, prefix="/api", tags=["queue"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables

    route_count = 0
    for r in app.routes:
        methods = getattr(r, "methods", None)
        path = getattr(r, "path", None)
        if path:
            methods_str = ", ".join(sorted(methods)) if methods else "N/A"
            logger.debug("%-20s %s", methods_str, path)
            route_count += 1
    logger.info("Registered %d routes", route_count)


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify the service is up"""
    return {"app_name": "Bracket Engine API", "status": "healthy"}
