"""Reference document model.

A reference document is the YAML rendition of what an import step would
register: one section per entity kind, nested by owner the same way the
``add_*`` registration calls expect.

```yaml
templates:
  Template OS Linux: {uuid: 7df96b18c230490a9a0a9e2307226338}
items:
  Template OS Linux:
    system.cpu.load: {uuid: 0a4d1e9c8d3b4fd0a8d2f3e1b5c6d7e8}
httpsteps:
  Web server:
    Login check:
      Open page: {}
```

``resolve_references`` walks every registered entry after registration and
reports the database ID each one resolved to.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..dependency.graph import resolution_order
from ..utils.exceptions import DocumentError
from .kinds import EntityKind

if TYPE_CHECKING:
    from .resolver import ImportReferencer

logger = structlog.get_logger(__name__)

SECTION_KINDS: dict[str, EntityKind] = {
    "groups": EntityKind.GROUP,
    "templates": EntityKind.TEMPLATE,
    "hosts": EntityKind.HOST,
    "items": EntityKind.ITEM,
    "valuemaps": EntityKind.VALUEMAP,
    "triggers": EntityKind.TRIGGER,
    "graphs": EntityKind.GRAPH,
    "iconmaps": EntityKind.ICONMAP,
    "images": EntityKind.IMAGE,
    "maps": EntityKind.MAP,
    "template_dashboards": EntityKind.TEMPLATE_DASHBOARD,
    "macros": EntityKind.MACRO,
    "proxies": EntityKind.PROXY,
    "host_prototypes": EntityKind.HOST_PROTOTYPE,
    "httptests": EntityKind.HTTPTEST,
    "httpsteps": EntityKind.HTTPSTEP,
}


class ReferenceDocument(BaseModel):
    """Registration sections of one import, keyed by section name."""

    model_config = ConfigDict(extra="forbid")

    groups: dict[str, Any] = Field(default_factory=dict)
    templates: dict[str, Any] = Field(default_factory=dict)
    hosts: dict[str, Any] = Field(default_factory=dict)
    items: dict[str, Any] = Field(default_factory=dict)
    valuemaps: dict[str, Any] = Field(default_factory=dict)
    triggers: dict[str, Any] = Field(default_factory=dict)
    graphs: dict[str, Any] = Field(default_factory=dict)
    iconmaps: dict[str, Any] = Field(default_factory=dict)
    images: dict[str, Any] = Field(default_factory=dict)
    maps: dict[str, Any] = Field(default_factory=dict)
    template_dashboards: dict[str, Any] = Field(default_factory=dict)
    macros: dict[str, Any] = Field(default_factory=dict)
    proxies: dict[str, Any] = Field(default_factory=dict)
    host_prototypes: dict[str, Any] = Field(default_factory=dict)
    httptests: dict[str, Any] = Field(default_factory=dict)
    httpsteps: dict[str, Any] = Field(default_factory=dict)

    @field_validator("*", mode="before")
    @classmethod
    def empty_section(cls, v: Any) -> Any:
        """An empty YAML section (``hosts:``) loads as None."""
        return {} if v is None else v

    @classmethod
    def from_file(cls, path: Path) -> "ReferenceDocument":
        """
        Load a reference document from YAML.

        Raises:
            DocumentError: If the file is not valid YAML or has unknown sections
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise DocumentError(f"Cannot read reference document {path}", e) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise DocumentError(
                f"Reference document {path} must be a mapping, got {type(data).__name__}"
            )

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise DocumentError(f"Invalid reference document {path}", e) from e

    def sections(self) -> dict[EntityKind, dict[str, Any]]:
        """Non-empty sections keyed by entity kind, with empty entries as {}."""
        return {
            kind: _copy_nested(getattr(self, name))
            for name, kind in SECTION_KINDS.items()
            if getattr(self, name)
        }

    def registrations(self) -> dict[EntityKind, dict[str, Any]]:
        """
        Sections plus the references they imply.

        Owner names of host-scoped sections are registered as templates and
        hosts, dashboard owners as templates, discovery rules of host
        prototypes as items and the web scenarios of steps as httptests.
        Explicit entries are never overwritten.
        """
        sections = self.sections()
        merged = dict(sections)

        def imply(kind: EntityKind, *path: str, meta: dict[str, Any] | None = None) -> None:
            level = merged.setdefault(kind, {})
            for name in path[:-1]:
                level = level.setdefault(name, {})
            level.setdefault(path[-1], dict(meta or {}))

        for kind in OWNER_SCOPED_KINDS:
            for host in sections.get(kind, {}):
                imply(EntityKind.TEMPLATE, host)
                imply(EntityKind.HOST, host)

        for template in sections.get(EntityKind.TEMPLATE_DASHBOARD, {}):
            imply(EntityKind.TEMPLATE, template)

        for host, rules in sections.get(EntityKind.HOST_PROTOTYPE, {}).items():
            for rule_key, prototypes in rules.items():
                rule_uuids = [
                    meta.get("discovery_rule_uuid")
                    for meta in prototypes.values()
                    if meta.get("discovery_rule_uuid")
                ]
                meta = {"uuid": rule_uuids[0]} if rule_uuids else {}
                imply(EntityKind.ITEM, host, rule_key, meta=meta)

        for host, httptests in sections.get(EntityKind.HTTPSTEP, {}).items():
            for test_name in httptests:
                imply(EntityKind.HTTPTEST, host, test_name)

        return merged

    def register(self, referencer: "ImportReferencer") -> None:
        """Register every section, and what it implies, with ``referencer``."""
        registrations = self.registrations()
        for kind, pending in registrations.items():
            referencer.register(kind, pending)
        logger.debug("Reference document registered", kinds=[k.value for k in registrations])


OWNER_SCOPED_KINDS = (
    EntityKind.ITEM,
    EntityKind.VALUEMAP,
    EntityKind.GRAPH,
    EntityKind.MACRO,
    EntityKind.HOST_PROTOTYPE,
    EntityKind.HTTPTEST,
    EntityKind.HTTPSTEP,
)


def _copy_nested(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, dict):
        return {key: _copy_nested(nested) for key, nested in value.items()}
    return value


@dataclass
class ReferenceResult:
    """Outcome of resolving one registered entry."""

    kind: EntityKind
    reference: str
    db_id: str | None

    @property
    def found(self) -> bool:
        return self.db_id is not None


def _by_uuid_or(uuid: str | None, by_uuid, fallback) -> str | None:
    if uuid:
        db_id = by_uuid(uuid)
        if db_id is not None:
            return db_id
    return fallback()


def _resolve_kind(
    referencer: "ImportReferencer", kind: EntityKind, pending: dict[str, Any]
) -> list[tuple[str, str | None]]:
    r = referencer
    results: list[tuple[str, str | None]] = []

    if kind == EntityKind.GROUP:
        for name, meta in pending.items():
            db_id = _by_uuid_or(
                meta.get("uuid"), r.find_group_id_by_uuid, lambda: r.find_group_id_by_name(name)
            )
            results.append((name, db_id))

    elif kind == EntityKind.TEMPLATE:
        for host, meta in pending.items():
            db_id = _by_uuid_or(
                meta.get("uuid"),
                r.find_template_id_by_uuid,
                lambda: r.find_template_id_by_host(host),
            )
            results.append((host, db_id))

    elif kind in (EntityKind.HOST, EntityKind.PROXY):
        find = r.find_host_id_by_host if kind == EntityKind.HOST else r.find_proxy_id_by_host
        results.extend((host, find(host)) for host in pending)

    elif kind in (EntityKind.ICONMAP, EntityKind.IMAGE, EntityKind.MAP):
        find = {
            EntityKind.ICONMAP: r.find_iconmap_id_by_name,
            EntityKind.IMAGE: r.find_image_id_by_name,
            EntityKind.MAP: r.find_map_id_by_name,
        }[kind]
        results.extend((name, find(name)) for name in pending)

    elif kind == EntityKind.TRIGGER:
        for description, expressions in pending.items():
            for expression, recoveries in expressions.items():
                for recovery, meta in recoveries.items():
                    db_id = _by_uuid_or(
                        meta.get("uuid"),
                        r.find_trigger_id_by_uuid,
                        lambda: r.find_trigger_id_by_name(description, expression, recovery),
                    )
                    results.append((description, db_id))

    elif kind == EntityKind.TEMPLATE_DASHBOARD:
        for template, dashboards in pending.items():
            templateid = r.find_template_id_by_host(template)
            for name, meta in dashboards.items():
                db_id = _by_uuid_or(
                    meta.get("uuid"),
                    r.find_template_dashboard_id_by_uuid,
                    lambda: (
                        r.find_template_dashboard_id_by_name(templateid, name)
                        if templateid is not None
                        else None
                    ),
                )
                results.append((f"{template}/{name}", db_id))

    else:
        for host, entries in pending.items():
            hostid = r.find_template_id_or_host_id_by_host(host)
            results.extend(_resolve_owned(r, kind, host, hostid, entries))

    return results


def _resolve_owned(
    r: "ImportReferencer", kind: EntityKind, host: str, hostid: str | None, entries: dict[str, Any]
) -> list[tuple[str, str | None]]:
    results: list[tuple[str, str | None]] = []

    for name, meta in entries.items():
        reference = f"{host}/{name}"

        if kind == EntityKind.HOST_PROTOTYPE:
            for proto_host, proto_meta in meta.items():
                ruleid = None
                if hostid is not None:
                    ruleid = _by_uuid_or(
                        proto_meta.get("discovery_rule_uuid"),
                        r.find_item_id_by_uuid,
                        lambda: r.find_item_id_by_key(hostid, name),
                    )
                db_id = _by_uuid_or(
                    proto_meta.get("uuid"),
                    r.find_host_prototype_id_by_uuid,
                    lambda: (
                        r.find_host_prototype_id_by_host(hostid, ruleid, proto_host)
                        if ruleid is not None
                        else None
                    ),
                )
                results.append((f"{reference}/{proto_host}", db_id))
            continue

        if kind == EntityKind.HTTPSTEP:
            httptestid = r.find_httptest_id_by_name(hostid, name) if hostid is not None else None
            for step in meta:
                db_id = None
                if httptestid is not None:
                    db_id = r.find_httpstep_id_by_name(hostid, httptestid, step)
                results.append((f"{reference}/{step}", db_id))
            continue

        if hostid is None:
            results.append((reference, None))
            continue

        if kind == EntityKind.ITEM:
            db_id = _by_uuid_or(
                meta.get("uuid"),
                r.find_item_id_by_uuid,
                lambda: r.find_item_id_by_key(hostid, name),
            )
        elif kind == EntityKind.GRAPH:
            db_id = _by_uuid_or(
                meta.get("uuid"),
                r.find_graph_id_by_uuid,
                lambda: r.find_graph_id_by_name(hostid, name),
            )
        elif kind == EntityKind.HTTPTEST:
            db_id = _by_uuid_or(
                meta.get("uuid"),
                r.find_httptest_id_by_uuid,
                lambda: r.find_httptest_id_by_name(hostid, name),
            )
        elif kind == EntityKind.VALUEMAP:
            db_id = r.find_valuemap_id_by_name(hostid, name)
        else:
            db_id = r.find_macro_id(hostid, name)

        results.append((reference, db_id))

    return results


def resolve_references(
    referencer: "ImportReferencer", document: ReferenceDocument
) -> list[ReferenceResult]:
    """
    Resolve every entry of ``document`` after registering it.

    Kinds are walked in dependency order so owner lookups come first.
    """
    document.register(referencer)
    sections = document.sections()

    results: list[ReferenceResult] = []
    for kind in resolution_order(*sections):
        if kind not in sections:
            continue
        for reference, db_id in _resolve_kind(referencer, kind, sections[kind]):
            results.append(ReferenceResult(kind=kind, reference=reference, db_id=db_id))

    return results
