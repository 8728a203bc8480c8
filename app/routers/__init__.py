"""
API routers package.
"""
from app.routers import analytics

__all__ = ["analytics"]
