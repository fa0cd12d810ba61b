"""
NoteShare Backend — Application Package
=========================================

What: The notes-sharing API: note lifecycle, engagement, archives, downloads.
Who:  Imported by uvicorn (noteshare.main:app), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │   Routes + auth (API Layer)         │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Business Logic)         │  ← ordering, ownership, validation
    ├──────────────────┬──────────────────┤
    │ Models & Schemas │   Blob stores    │  ← SQLAlchemy ORM + Pydantic │ bytes
    ├──────────────────┴──────────────────┤
    │   Database (Persistence)            │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
