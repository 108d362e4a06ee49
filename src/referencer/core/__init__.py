"""Core components of the import reference resolver.

``kinds`` and ``cache`` are re-exported here. The resolver facade and the
document model import the dependency package, so they are imported from
their own modules (``referencer.core.resolver``, ``referencer.core.document``).
"""

from .cache import KindCache, ResolverStats
from .kinds import KIND_DEPENDENCIES, OWNER_KINDS, EntityKind

__all__ = ["EntityKind", "KIND_DEPENDENCIES", "OWNER_KINDS", "KindCache", "ResolverStats"]
