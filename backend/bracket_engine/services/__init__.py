"""
Services Layer

Bracket engine logic that:
- Accepts domain inputs (IDs, sessions, etc.)
- Returns domain outputs (models, dicts, etc.)
- Does NOT depend on HTTP request/response objects
- Owns its transaction: each public mutating call commits once or rolls back
"""
