"""
FastAPI routers for AAS Package Studio.
"""

from aas_studio.routers import documents, sessions, templates

__all__ = ["sessions", "documents", "templates"]
