"""
Services Layer

League business logic:
- Accept domain inputs (IDs, sessions, dataclasses)
- Return domain outputs (models, dataclasses, plain dicts)
- Do NOT depend on HTTP request/response objects
- Raise reason-coded LeagueError subclasses, never HTTPException
"""
