"""
Spoken Admin API — Application Package Initializer
====================================================

What: Marks the `spoken_admin` directory as a Python package.
Why:  Enables module imports like `from spoken_admin.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    Every business route runs behind the same request pipeline:

    ┌─────────────────────────────────────┐
    │     Middleware (app-wide)           │  ← request id, access log, headers
    ├─────────────────────────────────────┤
    │     ApiPipeline (per route)         │  ← rate limit → auth → validation
    ├─────────────────────────────────────┤
    │     Routes (handlers)               │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (business logic)       │  ← course and learner rules, audit
    ├─────────────────────────────────────┤
    │     Models & Schemas (data)         │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘

    The pipeline owns admission (rate limit), identity (auth gate) and input
    shape (sanitise + validate); handlers only ever see a RequestContext whose
    caller and body have already been checked.
"""

__version__ = "1.0.0"
