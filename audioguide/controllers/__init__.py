"""FastAPI routers acting as controllers in the MVC architecture."""

from . import generation, guide

__all__ = ["generation", "guide"]
