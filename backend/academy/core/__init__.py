"""
Core module for the Academy backend.

This module contains core functionality including:
- Configuration management
- Database connections
- Security utilities (JWT, password hashing)
- Error handling and logging setup
"""

from .config import settings
from .database import get_db, engine, SessionLocal
from .security import (
    create_access_token,
    token_user_id,
    verify_password,
    get_password_hash
)

__all__ = [
    "settings",
    "get_db",
    "engine",
    "SessionLocal",
    "create_access_token",
    "token_user_id",
    "verify_password",
    "get_password_hash"
]
