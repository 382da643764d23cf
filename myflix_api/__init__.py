"""myFlix API - movies, users and favorite movies behind JWT authentication."""

from .api import app, create_app
from .favorites import FavoritesManager
from .service import MyFlixService
from .storage import create_repository

__version__ = "1.0.0"

__all__ = [
    "FavoritesManager",
    "MyFlixService",
    "app",
    "create_app",
    "create_repository",
]
