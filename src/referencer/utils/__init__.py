"""Utility functions and exceptions."""

from .exceptions import (
    CyclicDependencyError,
    DocumentError,
    ReferencerError,
    RegistrationError,
    StoreError,
    StoreQueryError,
    UnknownEntityKindError,
    UnsupportedFieldError,
)

__all__ = [
    "ReferencerError",
    "RegistrationError",
    "UnknownEntityKindError",
    "CyclicDependencyError",
    "DocumentError",
    "StoreError",
    "StoreQueryError",
    "UnsupportedFieldError",
]
