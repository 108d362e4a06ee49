"""Abstract collaborators the resolver reads through."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from .conditions import Condition


class DataStore(ABC):
    """
    Filtered read access to persisted configuration entities.

    Implementations return a mapping of database ID to row, where each row
    holds the requested output fields as strings. IDs are strings as well.
    Errors are raised as StoreError subclasses and are not caught by the
    resolver.
    """

    @abstractmethod
    def select(
        self,
        kind: str,
        output: Sequence[str],
        where: Condition,
        flags: Sequence[int] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """
        Run one filtered query.

        Args:
            kind: Entity kind tag (EntityKind value)
            output: Fields to return per row
            where: Filter condition tree
            flags: Optional discovery flag restriction

        Returns:
            Mapping of database ID to row
        """


class ExpressionResolver(ABC):
    """Rewrites stored trigger expressions into canonical, comparable text."""

    @abstractmethod
    def resolve_trigger_expressions(
        self, triggers: dict[str, dict[str, Any]], sources: Sequence[str]
    ) -> dict[str, dict[str, Any]]:
        """
        Expand the expression fields named in ``sources``.

        Args:
            triggers: Trigger rows keyed by trigger ID
            sources: Field names holding expressions

        Returns:
            Same mapping with the ``sources`` fields rewritten
        """
