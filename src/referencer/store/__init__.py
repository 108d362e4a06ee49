"""Data Store collaborators: abstract interfaces, conditions and SQLite backend."""

from .base import DataStore, ExpressionResolver
from .conditions import AllOf, AnyOf, Condition, FieldIn, all_of, any_of, field_in
from .sqlite import SQLiteExpressionResolver, SQLiteStore

__all__ = [
    "DataStore",
    "ExpressionResolver",
    "Condition",
    "FieldIn",
    "AllOf",
    "AnyOf",
    "field_in",
    "all_of",
    "any_of",
    "SQLiteStore",
    "SQLiteExpressionResolver",
]
