"""Batched query adapters, one per entity kind.

Each adapter receives the kind's pending registration set and returns the
rows to cache, keyed by database ID. Adapters never query with an empty
filter: when nothing can be matched they return an empty mapping.

Host-scoped adapters resolve owner host names through the referencer first
and drop owners that do not resolve.
"""

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

import structlog

from ..constants import GRAPH_HOSTS_SEPARATOR, TRIGGER_EXPRESSION_SOURCES
from ..store.conditions import Condition, all_of, any_of, field_in
from .kinds import EntityKind

if TYPE_CHECKING:
    from .resolver import ImportReferencer

logger = structlog.get_logger(__name__)

Rows = dict[str, dict[str, Any]]
Adapter = Callable[["ImportReferencer", dict[str, Any]], Rows]


def _uuids(entries: Iterable[Any]) -> list[str]:
    """Collect the non-empty ``uuid`` values of registration metadata."""
    uuids = []
    for meta in entries:
        if isinstance(meta, dict) and meta.get("uuid"):
            uuids.append(str(meta["uuid"]))
    return uuids


def _by_name_or_uuid(name_field: str, pending: dict[str, Any]) -> Condition:
    uuids = _uuids(pending.values())
    if not uuids:
        return field_in(name_field, pending)
    return any_of(field_in("uuid", uuids), field_in(name_field, pending))


def _owner_clauses(
    referencer: "ImportReferencer",
    kind: EntityKind,
    pending: dict[str, Any],
    owner_field: str,
    key_field: str,
    with_uuid: bool = True,
    templates_only: bool = False,
) -> list[Condition]:
    """
    Build one ``owner AND (key OR uuid)`` clause per resolvable owner.

    Args:
        referencer: Referencer used to resolve owner names
        kind: Kind being loaded (for logging)
        pending: ``{owner_name: {key: metadata}}``
        owner_field: Field holding the owner ID
        key_field: Field holding the local name or key
        with_uuid: Also match registered UUIDs
        templates_only: Resolve owners among templates only
    """
    clauses: list[Condition] = []

    for owner, entries in pending.items():
        ownerid = referencer.lookup_owner(owner, templates_only=templates_only)

        if ownerid is None:
            logger.debug("Owner not resolved, skipping", kind=kind.value, owner=owner)
            continue

        match: Condition = field_in(key_field, entries)
        uuids = _uuids(entries.values()) if with_uuid else []
        if uuids:
            match = any_of(match, field_in("uuid", uuids))

        clauses.append(all_of(field_in(owner_field, [ownerid]), match))

    return clauses


def _select_owned(
    referencer: "ImportReferencer",
    kind: EntityKind,
    output: list[str],
    clauses: list[Condition],
) -> Rows:
    if not clauses:
        return {}
    return referencer.select(kind, output, any_of(*clauses))


def select_groups(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    return referencer.select(EntityKind.GROUP, ["name", "uuid"], _by_name_or_uuid("name", pending))


def select_templates(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    return referencer.select(
        EntityKind.TEMPLATE, ["host", "uuid"], _by_name_or_uuid("host", pending)
    )


def select_hosts(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    return referencer.select(EntityKind.HOST, ["host"], field_in("host", pending))


def _select_by_name(kind: EntityKind, name_field: str) -> Adapter:
    def adapter(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
        return referencer.select(kind, [name_field], field_in(name_field, pending))

    adapter.__name__ = f"select_{kind.value}s"
    return adapter


def select_items(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    clauses = _owner_clauses(referencer, EntityKind.ITEM, pending, "hostid", "key_")
    return _select_owned(referencer, EntityKind.ITEM, ["hostid", "key_", "uuid"], clauses)


def select_valuemaps(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    clauses = _owner_clauses(
        referencer, EntityKind.VALUEMAP, pending, "hostid", "name", with_uuid=False
    )
    return _select_owned(referencer, EntityKind.VALUEMAP, ["hostid", "name"], clauses)


def select_macros(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    clauses = _owner_clauses(
        referencer, EntityKind.MACRO, pending, "hostid", "macro", with_uuid=False
    )
    return _select_owned(referencer, EntityKind.MACRO, ["hostid", "macro"], clauses)


def select_httptests(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    clauses = _owner_clauses(referencer, EntityKind.HTTPTEST, pending, "hostid", "name")
    return _select_owned(referencer, EntityKind.HTTPTEST, ["hostid", "name", "uuid"], clauses)


def select_template_dashboards(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    clauses = _owner_clauses(
        referencer,
        EntityKind.TEMPLATE_DASHBOARD,
        pending,
        "templateid",
        "name",
        templates_only=True,
    )
    return _select_owned(
        referencer, EntityKind.TEMPLATE_DASHBOARD, ["templateid", "name", "uuid"], clauses
    )


def select_httpsteps(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    """Steps are scoped by owner host and by the name of their web scenario."""
    clauses: list[Condition] = []

    for owner, httptests in pending.items():
        hostid = referencer.lookup_owner(owner)
        if hostid is None:
            logger.debug("Owner not resolved, skipping", kind="httpstep", owner=owner)
            continue

        per_test = [
            all_of(field_in("httptest_name", [name]), field_in("name", steps))
            for name, steps in httptests.items()
        ]
        clauses.append(all_of(field_in("hostid", [hostid]), any_of(*per_test)))

    return _select_owned(
        referencer, EntityKind.HTTPSTEP, ["hostid", "httptestid", "name"], clauses
    )


def select_triggers(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    """
    Load trigger candidates by UUID and by description, then expand expressions.

    Rows found by UUID win over rows found by description. Expressions are
    expanded once for the whole batch; a candidate is kept when its UUID was
    registered or its (description, expression, recovery expression) triple
    was.
    """
    uuids: set[str] = set()
    for expressions in pending.values():
        for recoveries in expressions.values():
            uuids.update(_uuids(recoveries.values()))

    output = ["uuid", "description", "expression", "recovery_expression"]
    flags = referencer.config.trigger_flags

    candidates: Rows = {}
    if uuids:
        candidates = referencer.select(
            EntityKind.TRIGGER, output, field_in("uuid", sorted(uuids)), flags=flags
        )
    by_description = referencer.select(
        EntityKind.TRIGGER, output, field_in("description", pending), flags=flags
    )
    for triggerid, row in by_description.items():
        candidates.setdefault(triggerid, row)

    if not candidates:
        return {}

    candidates = referencer.expressions.resolve_trigger_expressions(
        candidates, TRIGGER_EXPRESSION_SOURCES
    )

    rows: Rows = {}
    for triggerid, trigger in candidates.items():
        recoveries = pending.get(trigger["description"], {}).get(trigger["expression"], {})
        if trigger["uuid"] in uuids or trigger["recovery_expression"] in recoveries:
            rows[triggerid] = {
                "uuid": trigger["uuid"],
                "description": trigger["description"],
                "expression": trigger["expression"],
                "recovery_expression": trigger["recovery_expression"],
            }
    return rows


def select_graphs(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    """Graphs are matched by UUID or by name, with their member host IDs."""
    uuids: list[str] = []
    names: list[str] = []
    for graphs in pending.values():
        uuids.extend(_uuids(graphs.values()))
        names.extend(graphs)

    output = ["uuid", "name", "hosts"]
    candidates: Rows = {}
    if uuids:
        candidates = referencer.select(EntityKind.GRAPH, output, field_in("uuid", uuids))
    if names:
        for graphid, row in referencer.select(
            EntityKind.GRAPH, output, field_in("name", names)
        ).items():
            candidates.setdefault(graphid, row)

    return {
        graphid: {
            "uuid": row["uuid"],
            "name": row["name"],
            "hosts": [h for h in row["hosts"].split(GRAPH_HOSTS_SEPARATOR) if h],
        }
        for graphid, row in candidates.items()
    }


def select_host_prototypes(referencer: "ImportReferencer", pending: dict[str, Any]) -> Rows:
    """
    Load host prototypes below their discovery rules.

    Pending shape: ``{host: {rule_key: {prototype_host: metadata}}}``. When the
    first prototype of a rule carries ``discovery_rule_uuid`` the rule is found
    by that UUID and prototypes are matched by UUID; otherwise the rule is
    found by key on the owner and prototypes are matched by host name.
    """
    clauses: list[Condition] = []

    for owner, rules in pending.items():
        hostid = referencer.lookup_owner(owner)
        if hostid is None:
            logger.debug("Owner not resolved, skipping", kind="host_prototype", owner=owner)
            continue

        for rule_key, prototypes in rules.items():
            first = next(iter(prototypes.values()), {})
            rule_uuid = first.get("discovery_rule_uuid", "") if isinstance(first, dict) else ""

            if rule_uuid:
                ruleid = referencer.lookup(EntityKind.ITEM, uuid=rule_uuid)
                match = field_in("uuid", _uuids(prototypes.values()))
            else:
                ruleid = referencer.lookup(EntityKind.ITEM, hostid=hostid, key_=rule_key)
                match = field_in("host", prototypes)

            if ruleid is None:
                logger.debug(
                    "Discovery rule not resolved, skipping", owner=owner, rule_key=rule_key
                )
                continue

            clauses.append(all_of(field_in("parent_itemid", [ruleid]), match))

    rows = _select_owned(
        referencer,
        EntityKind.HOST_PROTOTYPE,
        ["host", "uuid", "parent_itemid", "parent_hostid"],
        clauses,
    )
    return {
        hostid: {
            "uuid": row["uuid"],
            "host": row["host"],
            "parent_hostid": row["parent_hostid"],
            "discovery_ruleid": row["parent_itemid"],
        }
        for hostid, row in rows.items()
    }


ADAPTERS: dict[EntityKind, Adapter] = {
    EntityKind.GROUP: select_groups,
    EntityKind.TEMPLATE: select_templates,
    EntityKind.HOST: select_hosts,
    EntityKind.ITEM: select_items,
    EntityKind.VALUEMAP: select_valuemaps,
    EntityKind.TRIGGER: select_triggers,
    EntityKind.GRAPH: select_graphs,
    EntityKind.ICONMAP: _select_by_name(EntityKind.ICONMAP, "name"),
    EntityKind.IMAGE: _select_by_name(EntityKind.IMAGE, "name"),
    EntityKind.MAP: _select_by_name(EntityKind.MAP, "name"),
    EntityKind.TEMPLATE_DASHBOARD: select_template_dashboards,
    EntityKind.MACRO: select_macros,
    EntityKind.PROXY: _select_by_name(EntityKind.PROXY, "host"),
    EntityKind.HOST_PROTOTYPE: select_host_prototypes,
    EntityKind.HTTPTEST: select_httptests,
    EntityKind.HTTPSTEP: select_httpsteps,
}
