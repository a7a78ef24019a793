"""
asgi.py -- ASGI entry point for the knowledge base.

Run with:  uvicorn asgi:app --reload

api/main.py builds the complete application; this module exists so the
server target stays stable if more surfaces are mounted later.
"""

from api.main import app

__all__ = ["app"]
