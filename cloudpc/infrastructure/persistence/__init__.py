"""
Persistence Module

SQLModel tables, the async Database service and record repositories.
"""

from .database import Database
from .models import AVAILABLE_CONFIGS, CloudPC, User
from .repositories import CloudPCRepository, UserRepository

__all__ = [
    "Database",
    "User",
    "CloudPC",
    "AVAILABLE_CONFIGS",
    "UserRepository",
    "CloudPCRepository",
]
