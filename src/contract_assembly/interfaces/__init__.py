"""Abstract interfaces for the contract assembly system."""

from .repository import IProjectRepository
from .store import IClauseStore, InsertReport

__all__ = [
    "IClauseStore",
    "IProjectRepository",
    "InsertReport",
]
