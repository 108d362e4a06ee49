"""Filter conditions understood by Data Store implementations.

A batch query is a tree of three node types:

    field_in("key_", ["agent.ping"])          field value is one of a set
    all_of(cond, cond, ...)                    logical AND
    any_of(cond, cond, ...)                    logical OR

Example (items of two owners, matched by key or UUID):

    any_of(
        all_of(field_in("hostid", ["10100"]),
               any_of(field_in("key_", keys_a), field_in("uuid", uuids_a))),
        all_of(field_in("hostid", ["10101"]),
               any_of(field_in("key_", keys_b), field_in("uuid", uuids_b))),
    )
"""

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class FieldIn:
    """Field value is one of ``values``. An empty set matches nothing."""

    field: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class AllOf:
    """Every nested condition holds. An empty AllOf matches everything."""

    conditions: tuple["Condition", ...]


@dataclass(frozen=True)
class AnyOf:
    """At least one nested condition holds. An empty AnyOf matches nothing."""

    conditions: tuple["Condition", ...]


Condition = FieldIn | AllOf | AnyOf


def field_in(field: str, values: Iterable[str]) -> FieldIn:
    """Build a FieldIn, dropping duplicate values but keeping their order."""
    return FieldIn(field=field, values=tuple(dict.fromkeys(str(v) for v in values)))


def all_of(*conditions: Condition) -> AllOf:
    return AllOf(conditions=tuple(conditions))


def any_of(*conditions: Condition) -> AnyOf:
    return AnyOf(conditions=tuple(conditions))


def matches(condition: Condition, row: dict[str, str]) -> bool:
    """Evaluate a condition against one row (missing fields never match)."""
    if isinstance(condition, FieldIn):
        return row.get(condition.field) in condition.values
    if isinstance(condition, AllOf):
        return all(matches(nested, row) for nested in condition.conditions)
    return any(matches(nested, row) for nested in condition.conditions)


def condition_size(condition: Condition) -> int:
    """Number of values a condition tree binds."""
    if isinstance(condition, FieldIn):
        return len(condition.values)
    return sum(condition_size(nested) for nested in condition.conditions)


def split_condition(condition: Condition, limit: int) -> list[Condition]:
    """
    Split a condition into parts that bind at most ``limit`` values each.

    A row matches ``condition`` exactly when it matches at least one part, so
    a store can run one query per part and merge the results.

    Raises:
        ValueError: If an AND node binds ``limit`` values or more outside its
            largest member, so no split can bring it under the limit
    """
    if limit < 1:
        raise ValueError(f"Cannot split a condition below {limit} values")
    if condition_size(condition) <= limit:
        return [condition]

    if isinstance(condition, FieldIn):
        return [
            FieldIn(field=condition.field, values=condition.values[i : i + limit])
            for i in range(0, len(condition.values), limit)
        ]

    if isinstance(condition, AnyOf):
        parts: list[Condition] = []
        group: list[Condition] = []
        size = 0
        for nested in condition.conditions:
            for piece in split_condition(nested, limit):
                piece_size = condition_size(piece)
                if group and size + piece_size > limit:
                    parts.append(any_of(*group))
                    group, size = [], 0
                group.append(piece)
                size += piece_size
        if group:
            parts.append(any_of(*group))
        return parts

    # AND distributes over the parts of its largest member.
    members = condition.conditions
    index = max(range(len(members)), key=lambda i: condition_size(members[i]))
    fixed = condition_size(condition) - condition_size(members[index])
    return [
        all_of(*members[:index], piece, *members[index + 1 :])
        for piece in split_condition(members[index], limit - fixed)
    ]
