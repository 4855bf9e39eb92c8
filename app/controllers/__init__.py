"""FastAPI routers acting as controllers in the MVC architecture."""

from . import emergency, intake

__all__ = ["emergency", "intake"]
