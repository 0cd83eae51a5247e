"""
Epic Notes Backend - Application Package Initializer
======================================================

What: Marks the `epicnotes` directory as a Python package.
Who:  Imported by uvicorn (`epicnotes.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Decode, validate, diff, persist
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Injected Database handle
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
