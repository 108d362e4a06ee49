"""Per-kind cache state and resolver statistics."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from .kinds import EntityKind


@dataclass
class ResolverStats:
    """Counters for resolver cache performance, per entity kind."""

    batches: Counter[str] = field(default_factory=Counter)
    queries: Counter[str] = field(default_factory=Counter)
    hits: Counter[str] = field(default_factory=Counter)
    misses: Counter[str] = field(default_factory=Counter)

    def batch(self, kind: EntityKind) -> None:
        """Record one batch load of a kind."""
        self.batches[kind.value] += 1

    def query(self, kind: EntityKind) -> None:
        """Record one Data Store query issued for a kind."""
        self.queries[kind.value] += 1

    def lookup(self, kind: EntityKind, found: bool) -> None:
        """Record a lookup outcome."""
        if found:
            self.hits[kind.value] += 1
        else:
            self.misses[kind.value] += 1

    @property
    def total_lookups(self) -> int:
        return sum(self.hits.values()) + sum(self.misses.values())

    def hit_rate(self) -> float:
        """
        Share of lookups that found an ID.

        Returns:
            float: Hit rate as a decimal (0.0 to 1.0).
        """
        if self.total_lookups == 0:
            return 0.0
        return sum(self.hits.values()) / self.total_lookups

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {
            "batches": dict(self.batches),
            "queries": dict(self.queries),
            "hits": dict(self.hits),
            "misses": dict(self.misses),
        }


@dataclass
class KindCache:
    """
    Registration and cache state of one entity kind.

    STATES:
        not loaded: ``resolved is None``; lookups trigger a batch
        loaded:     ``resolved`` holds ID -> identity attributes

    The pending set is consumed by the batch that loads the cache. A refresh
    drops the cache; when nothing was registered since the last batch the
    consumed set becomes pending again, so the same working set is requeried
    and rows created in the meantime become visible.

    Attributes:
        kind: Entity kind this state belongs to
        pending: Registered names/UUIDs awaiting the next batch
        resolved: Loaded rows, or None when not loaded
        consumed: Pending set used by the last successful batch
        recorded: Rows recorded via set_db_* while not loaded
    """

    kind: EntityKind
    pending: dict[str, Any] = field(default_factory=dict)
    resolved: dict[str, dict[str, Any]] | None = None
    consumed: dict[str, Any] = field(default_factory=dict)
    recorded: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def loaded(self) -> bool:
        return self.resolved is not None

    def register(self, pending: dict[str, Any]) -> bool:
        """
        Replace the pending set (last write wins).

        Returns:
            True if a non-empty pending set was overwritten
        """
        replaced = bool(self.pending)
        self.pending = pending
        return replaced

    def populate(self, rows: dict[str, dict[str, Any]]) -> None:
        """Store batch results and consume the pending set."""
        self.resolved = dict(rows)
        self.resolved.update(self.recorded)
        self.recorded = {}
        self.consumed = self.pending
        self.pending = {}

    def invalidate(self) -> None:
        """Forget loaded rows so the next lookup queries again."""
        self.resolved = None
        if not self.pending:
            self.pending = self.consumed
        self.consumed = {}

    def record(self, db_id: str, identity: dict[str, Any]) -> None:
        """Add a row created by an earlier import step."""
        if self.resolved is not None:
            self.resolved[db_id] = identity
        else:
            self.recorded[db_id] = identity

    def rows(self) -> dict[str, dict[str, Any]]:
        return self.resolved if self.resolved is not None else {}
