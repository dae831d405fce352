"""
Cactux Topo Backend — Application Package
==========================================

What: Route/boulder topo service: draws route lines over photos, compresses
      the annotated result and persists it.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← pipeline, persistence adapter
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database / Blob Store (Storage)   │  ← async sessions, files
    └─────────────────────────────────────┘

    The `editor` sub-package is the client half: point editor, renderer,
    drawing session and the HTTP client that talks to the API layer.
"""

__version__ = "1.0.0"
