"""Infrastructure persistence layer."""

from .database import Database
from .models import Base, CatalogItemModel, UserItemDataModel, UserModel
from .repositories import SqlCatalogRepository, UserDataRepository, UserRepository

__all__ = [
    "Base",
    "CatalogItemModel",
    "Database",
    "SqlCatalogRepository",
    "UserDataRepository",
    "UserItemDataModel",
    "UserModel",
    "UserRepository",
]
