"""Name/UUID to database ID resolver with per-kind batched caching."""

import time
from collections.abc import Callable
from typing import Any

import structlog

from ..config import ResolverConfig
from ..dependency.graph import resolution_order
from ..observability.metrics import MetricsCollector
from ..store.base import DataStore, ExpressionResolver
from ..store.conditions import Condition
from ..store.sqlite import SQLiteExpressionResolver, SQLiteStore
from ..utils.exceptions import ReferencerError, RegistrationError
from .cache import KindCache, ResolverStats
from .kinds import EntityKind
from .queries import ADAPTERS

logger = structlog.get_logger(__name__)

# Number of name levels above the metadata dict in each kind's registration.
REGISTRATION_DEPTH: dict[EntityKind, int] = {
    EntityKind.GROUP: 1,
    EntityKind.TEMPLATE: 1,
    EntityKind.HOST: 1,
    EntityKind.ICONMAP: 1,
    EntityKind.IMAGE: 1,
    EntityKind.MAP: 1,
    EntityKind.PROXY: 1,
    EntityKind.ITEM: 2,
    EntityKind.VALUEMAP: 2,
    EntityKind.GRAPH: 2,
    EntityKind.TEMPLATE_DASHBOARD: 2,
    EntityKind.MACRO: 2,
    EntityKind.HTTPTEST: 2,
    EntityKind.TRIGGER: 3,
    EntityKind.HOST_PROTOTYPE: 3,
    EntityKind.HTTPSTEP: 3,
}


def _copy_registration(kind: EntityKind, value: Any, depth: int, path: str = "") -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        where = f" at '{path}'" if path else ""
        got = type(value).__name__
        raise RegistrationError(kind.value, f"expected a mapping{where}, got {got}")

    if depth == 0:
        return dict(value)

    return {
        str(key): _copy_registration(kind, nested, depth - 1, f"{path}/{key}" if path else str(key))
        for key, nested in value.items()
    }


def _matcher(match: dict[str, str]) -> Callable[[dict[str, Any]], bool]:
    return lambda row: all(row.get(k) == v for k, v in match.items())


class ImportReferencer:
    """
    Resolve references of an import document to existing database IDs.

    USAGE CONTRACT:
    1. Register every name/UUID a kind will need (``add_items`` etc.)
       BEFORE the first lookup of that kind. A second registration for the
       same kind replaces the first one; names only in the first are dropped.
    2. Look up IDs (``find_item_id_by_key`` etc.). The first lookup of a kind
       runs one batched query for everything registered and caches it.
       ``None`` means "does not exist yet", never an error.
    3. After an import step writes rows of a kind, call ``refresh_<kind>()``
       so later lookups query again.

    One instance serves one import operation and holds no shared state.
    Data Store errors propagate unchanged and leave the kind unloaded, so a
    later lookup repeats the whole batch.
    """

    def __init__(
        self,
        store: DataStore,
        expressions: ExpressionResolver | None = None,
        config: ResolverConfig | None = None,
        collector: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the referencer.

        Args:
            store: Data Store rows are read from
            expressions: Trigger expression resolver; defaults to the SQLite
                one when ``store`` is a SQLiteStore
            config: Resolver behavior (trigger flag set, metrics toggle)
            collector: Metrics collector; defaults to a new one per referencer
        """
        self.store = store
        self.config = config or ResolverConfig()

        if expressions is None and isinstance(store, SQLiteStore):
            expressions = SQLiteExpressionResolver(store)
        self._expressions = expressions

        if collector is None and self.config.enable_metrics:
            collector = MetricsCollector()
        self.collector = collector

        self._caches: dict[EntityKind, KindCache] = {kind: KindCache(kind) for kind in EntityKind}
        self.stats = ResolverStats()

        # hostid -> interface reference -> interfaceid, filled by the importer
        self.interfaces_cache: dict[str, dict[str, str]] = {}

    @property
    def expressions(self) -> ExpressionResolver:
        if self._expressions is None:
            raise ReferencerError("No trigger expression resolver configured")
        return self._expressions

    # -------------------------------------------------------------------------
    # Engine
    # -------------------------------------------------------------------------

    def register(self, kind: EntityKind | str, pending: dict[str, Any]) -> None:
        """
        Replace the pending registration set of a kind.

        Raises:
            RegistrationError: If the mapping does not have the kind's shape
        """
        kind = EntityKind.parse(kind)
        copied = _copy_registration(kind, pending, REGISTRATION_DEPTH[kind])

        if self._caches[kind].register(copied):
            logger.debug("Pending registration overwritten", kind=kind.value, names=len(copied))

    def select(
        self,
        kind: EntityKind,
        output: list[str],
        where: Condition,
        flags: tuple[int, ...] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Run one Data Store query on behalf of a batch adapter."""
        self.stats.query(kind)
        return self.store.select(kind.value, output, where, flags=flags)

    def is_loaded(self, kind: EntityKind | str) -> bool:
        return self._caches[EntityKind.parse(kind)].loaded

    def load(self, kind: EntityKind | str) -> None:
        """
        Run the batch for a kind if it is not loaded yet.

        The pending set is only consumed once the batch succeeded.
        """
        kind = EntityKind.parse(kind)
        cache = self._caches[kind]
        if cache.loaded:
            return

        started = time.perf_counter()

        if cache.pending:
            rows = ADAPTERS[kind](self, cache.pending)
        else:
            rows = {}

        cache.populate(rows)
        self.stats.batch(kind)

        duration_ms = (time.perf_counter() - started) * 1000
        if self.collector is not None:
            self.collector.count_batch(kind.value, len(rows))
            self.collector.record_batch_latency(kind.value, duration_ms)

        logger.debug(
            "Batch loaded",
            kind=kind.value,
            requested=len(cache.consumed),
            cached=len(cache.rows()),
            duration_ms=round(duration_ms, 2),
        )

    def initialize(self, *kinds: EntityKind | str) -> None:
        """Load the given kinds and their prerequisites in dependency order."""
        for kind in resolution_order(*(EntityKind.parse(k) for k in kinds)):
            self.load(kind)

    def refresh(self, kind: EntityKind | str) -> None:
        """Drop a kind's cache so the next lookup queries again."""
        kind = EntityKind.parse(kind)
        self._caches[kind].invalidate()
        logger.debug("Cache refreshed", kind=kind.value)

    def set_db_entity(self, kind: EntityKind | str, db_id: str, record: dict[str, Any]) -> None:
        """Record a row created by an earlier import step without requerying."""
        kind = EntityKind.parse(kind)
        self._caches[kind].record(str(db_id), dict(record))

    def lookup(self, kind: EntityKind | str, **match: str) -> str | None:
        """
        Find a cached ID without counting it as a lookup.

        Batch adapters resolve owners and discovery rules through this, so
        ``stats`` and the metrics collector only reflect caller lookups.
        """
        kind = EntityKind.parse(kind)
        return self._find(kind, _matcher(match), record=False)

    def lookup_owner(self, host: str, templates_only: bool = False) -> str | None:
        """Uncounted owner lookup; templates are tried before hosts."""
        templateid = self.lookup(EntityKind.TEMPLATE, host=host)
        if templateid is not None or templates_only:
            return templateid
        return self.lookup(EntityKind.HOST, host=host)

    def _find(
        self,
        kind: EntityKind,
        predicate: Callable[[dict[str, Any]], bool],
        record: bool = True,
    ) -> str | None:
        self.load(kind)

        found = None
        for db_id, row in self._caches[kind].rows().items():
            if predicate(row):
                found = db_id
                break

        if record:
            self._record_lookup(kind, found is not None)
        return found

    def _find_by(self, kind: EntityKind, **match: str) -> str | None:
        return self._find(kind, _matcher(match))

    def _record_lookup(self, kind: EntityKind, found: bool) -> None:
        self.stats.lookup(kind, found)
        if self.collector is not None:
            self.collector.count_lookup(kind.value, found)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def find_group_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.GROUP, uuid=uuid)

    def find_group_id_by_name(self, name: str) -> str | None:
        return self._find_by(EntityKind.GROUP, name=name)

    def find_template_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.TEMPLATE, uuid=uuid)

    def find_template_id_by_host(self, host: str) -> str | None:
        return self._find_by(EntityKind.TEMPLATE, host=host)

    def find_host_id_by_host(self, host: str) -> str | None:
        return self._find_by(EntityKind.HOST, host=host)

    def find_template_id_or_host_id_by_host(self, host: str) -> str | None:
        """Owner lookup used by host-scoped kinds; templates are tried first."""
        templateid = self.find_template_id_by_host(host)
        if templateid is not None:
            return templateid
        return self.find_host_id_by_host(host)

    def find_interface_id_by_ref(self, hostid: str, interface_ref: str) -> str | None:
        return self.interfaces_cache.get(hostid, {}).get(interface_ref)

    def set_interface_refs(self, hostid: str, refs: dict[str, str]) -> None:
        """Remember interface IDs of a host by their document reference."""
        self.interfaces_cache[hostid] = dict(refs)

    def find_item_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.ITEM, uuid=uuid)

    def find_item_id_by_key(self, hostid: str, key: str) -> str | None:
        return self._find_by(EntityKind.ITEM, hostid=hostid, key_=key)

    def find_valuemap_id_by_name(self, hostid: str, name: str) -> str | None:
        return self._find_by(EntityKind.VALUEMAP, hostid=hostid, name=name)

    def find_image_id_by_name(self, name: str) -> str | None:
        return self._find_by(EntityKind.IMAGE, name=name)

    def find_trigger_by_id(self, triggerid: str) -> dict[str, Any] | None:
        """Return the cached trigger record (with expanded expressions)."""
        self.load(EntityKind.TRIGGER)
        trigger = self._caches[EntityKind.TRIGGER].rows().get(triggerid)
        self._record_lookup(EntityKind.TRIGGER, trigger is not None)
        return dict(trigger) if trigger is not None else None

    def find_trigger_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.TRIGGER, uuid=uuid)

    def find_trigger_id_by_name(
        self, name: str, expression: str, recovery_expression: str
    ) -> str | None:
        return self._find_by(
            EntityKind.TRIGGER,
            description=name,
            expression=expression,
            recovery_expression=recovery_expression,
        )

    def find_graph_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.GRAPH, uuid=uuid)

    def find_graph_id_by_name(self, hostid: str, name: str) -> str | None:
        """Match a graph by name among the graphs that include ``hostid``."""
        return self._find(
            EntityKind.GRAPH, lambda row: row.get("name") == name and hostid in row.get("hosts", [])
        )

    def find_iconmap_id_by_name(self, name: str) -> str | None:
        return self._find_by(EntityKind.ICONMAP, name=name)

    def find_map_id_by_name(self, name: str) -> str | None:
        return self._find_by(EntityKind.MAP, name=name)

    def find_template_dashboard_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.TEMPLATE_DASHBOARD, uuid=uuid)

    def find_template_dashboard_id_by_name(self, templateid: str, name: str) -> str | None:
        return self._find_by(EntityKind.TEMPLATE_DASHBOARD, templateid=templateid, name=name)

    def find_macro_id(self, hostid: str, macro: str) -> str | None:
        return self._find_by(EntityKind.MACRO, hostid=hostid, macro=macro)

    def find_proxy_id_by_host(self, host: str) -> str | None:
        return self._find_by(EntityKind.PROXY, host=host)

    def find_host_prototype_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.HOST_PROTOTYPE, uuid=uuid)

    def find_host_prototype_id_by_host(
        self, parent_hostid: str, discovery_ruleid: str, host: str
    ) -> str | None:
        return self._find_by(
            EntityKind.HOST_PROTOTYPE,
            parent_hostid=parent_hostid,
            discovery_ruleid=discovery_ruleid,
            host=host,
        )

    def find_httptest_id_by_uuid(self, uuid: str) -> str | None:
        return self._find_by(EntityKind.HTTPTEST, uuid=uuid)

    def find_httptest_id_by_name(self, hostid: str, name: str) -> str | None:
        return self._find_by(EntityKind.HTTPTEST, hostid=hostid, name=name)

    def find_httpstep_id_by_name(self, hostid: str, httptestid: str, name: str) -> str | None:
        return self._find_by(EntityKind.HTTPSTEP, hostid=hostid, httptestid=httptestid, name=name)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_groups(self, groups: dict[str, Any]) -> None:
        self.register(EntityKind.GROUP, groups)

    def add_templates(self, templates: dict[str, Any]) -> None:
        self.register(EntityKind.TEMPLATE, templates)

    def add_hosts(self, hosts: dict[str, Any]) -> None:
        self.register(EntityKind.HOST, hosts)

    def add_items(self, items: dict[str, Any]) -> None:
        self.register(EntityKind.ITEM, items)

    def add_valuemaps(self, valuemaps: dict[str, Any]) -> None:
        self.register(EntityKind.VALUEMAP, valuemaps)

    def add_triggers(self, triggers: dict[str, Any]) -> None:
        self.register(EntityKind.TRIGGER, triggers)

    def add_graphs(self, graphs: dict[str, Any]) -> None:
        self.register(EntityKind.GRAPH, graphs)

    def add_iconmaps(self, iconmaps: dict[str, Any]) -> None:
        self.register(EntityKind.ICONMAP, iconmaps)

    def add_images(self, images: dict[str, Any]) -> None:
        self.register(EntityKind.IMAGE, images)

    def add_maps(self, maps: dict[str, Any]) -> None:
        self.register(EntityKind.MAP, maps)

    def add_template_dashboards(self, dashboards: dict[str, Any]) -> None:
        self.register(EntityKind.TEMPLATE_DASHBOARD, dashboards)

    def add_macros(self, macros: dict[str, Any]) -> None:
        self.register(EntityKind.MACRO, macros)

    def add_proxies(self, proxies: dict[str, Any]) -> None:
        self.register(EntityKind.PROXY, proxies)

    def add_host_prototypes(self, host_prototypes: dict[str, Any]) -> None:
        self.register(EntityKind.HOST_PROTOTYPE, host_prototypes)

    def add_httptests(self, httptests: dict[str, Any]) -> None:
        self.register(EntityKind.HTTPTEST, httptests)

    def add_httpsteps(self, httpsteps: dict[str, Any]) -> None:
        self.register(EntityKind.HTTPSTEP, httpsteps)

    # -------------------------------------------------------------------------
    # Rows created during the import
    # -------------------------------------------------------------------------

    def set_db_group(self, groupid: str, group: dict[str, Any]) -> None:
        self.set_db_entity(
            EntityKind.GROUP, groupid, {"uuid": group.get("uuid", ""), "name": group["name"]}
        )

    def set_db_template(self, templateid: str, template: dict[str, Any]) -> None:
        self.set_db_entity(
            EntityKind.TEMPLATE,
            templateid,
            {"uuid": template.get("uuid", ""), "host": template["host"]},
        )

    def set_db_host(self, hostid: str, host: dict[str, Any]) -> None:
        self.set_db_entity(EntityKind.HOST, hostid, {"host": host["host"]})

    def set_db_item(self, itemid: str, item: dict[str, Any]) -> None:
        self.set_db_entity(
            EntityKind.ITEM,
            itemid,
            {"hostid": str(item["hostid"]), "uuid": item.get("uuid", ""), "key_": item["key_"]},
        )

    def set_db_trigger(self, triggerid: str, trigger: dict[str, Any]) -> None:
        self.set_db_entity(
            EntityKind.TRIGGER,
            triggerid,
            {
                "uuid": trigger.get("uuid", ""),
                "description": trigger["description"],
                "expression": trigger["expression"],
                "recovery_expression": trigger.get("recovery_expression", ""),
            },
        )

    def set_db_image(self, imageid: str, image: dict[str, Any]) -> None:
        self.set_db_entity(EntityKind.IMAGE, imageid, {"name": image["name"]})

    def set_db_map(self, mapid: str, sysmap: dict[str, Any]) -> None:
        self.set_db_entity(EntityKind.MAP, mapid, {"name": sysmap["name"]})

    def init_item_references(self) -> None:
        """Load items (and the hosts/templates they hang off) eagerly."""
        self.initialize(EntityKind.ITEM)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def refresh_groups(self) -> None:
        self.refresh(EntityKind.GROUP)

    def refresh_templates(self) -> None:
        self.refresh(EntityKind.TEMPLATE)

    def refresh_hosts(self) -> None:
        self.refresh(EntityKind.HOST)

    def refresh_items(self) -> None:
        self.refresh(EntityKind.ITEM)

    def refresh_valuemaps(self) -> None:
        self.refresh(EntityKind.VALUEMAP)

    def refresh_triggers(self) -> None:
        self.refresh(EntityKind.TRIGGER)

    def refresh_graphs(self) -> None:
        self.refresh(EntityKind.GRAPH)

    def refresh_iconmaps(self) -> None:
        self.refresh(EntityKind.ICONMAP)

    def refresh_images(self) -> None:
        self.refresh(EntityKind.IMAGE)

    def refresh_maps(self) -> None:
        self.refresh(EntityKind.MAP)

    def refresh_template_dashboards(self) -> None:
        self.refresh(EntityKind.TEMPLATE_DASHBOARD)

    def refresh_macros(self) -> None:
        self.refresh(EntityKind.MACRO)

    def refresh_proxies(self) -> None:
        self.refresh(EntityKind.PROXY)

    def refresh_host_prototypes(self) -> None:
        self.refresh(EntityKind.HOST_PROTOTYPE)

    def refresh_httptests(self) -> None:
        self.refresh(EntityKind.HTTPTEST)

    def refresh_httpsteps(self) -> None:
        self.refresh(EntityKind.HTTPSTEP)
