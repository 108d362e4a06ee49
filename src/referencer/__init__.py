"""Import Reference Resolver - map names and UUIDs of an import to database IDs."""

from .cli import app
from .config import ReferencerConfig
from .core.resolver import ImportReferencer

__version__ = "0.1.0"
__all__ = ["app", "ImportReferencer", "ReferencerConfig"]
