"""
Users API - Application Package Initializer
============================================

What: Marks the `users_api` directory as a Python package.
Why:  Enables module imports like `from users_api.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← user create/list/count
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← Mongo collection layout + Pydantic
    ├─────────────────────────────────────┤
    │   Connectivity (Store Lifecycle)    │  ← resolver, supervisor, readiness,
    │                                     │    shutdown coordinator
    └─────────────────────────────────────┘

    Routes never open store connections themselves. They read the supervisor's
    published readiness snapshot and answer 503 while the store is unavailable.
"""

__version__ = "1.0.0"
