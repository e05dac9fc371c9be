"""Authentication module for the slashgate API."""

from app.auth.config import auth_settings
from app.auth.middleware import AuthMiddleware

__all__ = [
    "auth_settings",
    "AuthMiddleware",
]
