"""Entity kinds known to the reference resolver and their prerequisites."""

from enum import Enum

from ..utils.exceptions import UnknownEntityKindError


class EntityKind(str, Enum):
    """Categories of importable configuration objects."""

    GROUP = "group"
    TEMPLATE = "template"
    HOST = "host"
    ITEM = "item"
    VALUEMAP = "valuemap"
    TRIGGER = "trigger"
    GRAPH = "graph"
    ICONMAP = "iconmap"
    IMAGE = "image"
    MAP = "map"
    TEMPLATE_DASHBOARD = "template_dashboard"
    MACRO = "macro"
    PROXY = "proxy"
    HOST_PROTOTYPE = "host_prototype"
    HTTPTEST = "httptest"
    HTTPSTEP = "httpstep"

    @classmethod
    def parse(cls, value: "str | EntityKind") -> "EntityKind":
        """
        Convert a kind tag to an EntityKind.

        Accepts the enum itself, its value, or the dashed spelling used in
        documents ("host-prototype").

        Raises:
            UnknownEntityKindError: If the tag names no kind.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().replace("-", "_"))
        except ValueError:
            raise UnknownEntityKindError(str(value)) from None


# Owner names of host-scoped kinds resolve through these kinds.
OWNER_KINDS: tuple[EntityKind, ...] = (EntityKind.TEMPLATE, EntityKind.HOST)

# -----------------------------------------------------------------------------
# KIND DEPENDENCIES
# -----------------------------------------------------------------------------
# A kind's batch query can only be built once every kind it depends on is
# loaded: owner host names become host IDs, and host prototypes additionally
# need the discovery rule (an item) they hang off.
KIND_DEPENDENCIES: dict[EntityKind, tuple[EntityKind, ...]] = {
    EntityKind.GROUP: (),
    EntityKind.TEMPLATE: (),
    EntityKind.HOST: (),
    EntityKind.ICONMAP: (),
    EntityKind.IMAGE: (),
    EntityKind.MAP: (),
    EntityKind.PROXY: (),
    EntityKind.TRIGGER: (),
    EntityKind.GRAPH: (),
    EntityKind.ITEM: OWNER_KINDS,
    EntityKind.VALUEMAP: OWNER_KINDS,
    EntityKind.MACRO: OWNER_KINDS,
    EntityKind.HTTPTEST: OWNER_KINDS,
    EntityKind.HTTPSTEP: OWNER_KINDS,
    EntityKind.TEMPLATE_DASHBOARD: (EntityKind.TEMPLATE,),
    EntityKind.HOST_PROTOTYPE: (*OWNER_KINDS, EntityKind.ITEM),
}
