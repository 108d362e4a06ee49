"""Named constants for the import reference resolver.

Values mirror the codes stored in the monitoring configuration database, so
they must not be renumbered.
"""

# -----------------------------------------------------------------------------
# Discovery Flags
# -----------------------------------------------------------------------------
# Stored in the ``flags`` column of items, triggers, graphs and hosts.

FLAG_DISCOVERY_NORMAL: int = 0
FLAG_DISCOVERY_RULE: int = 1
FLAG_DISCOVERY_PROTOTYPE: int = 2
FLAG_DISCOVERY_CREATED: int = 4

# Triggers are matched across plain, prototype and discovered triggers.
TRIGGER_LOOKUP_FLAGS: tuple[int, ...] = (
    FLAG_DISCOVERY_NORMAL,
    FLAG_DISCOVERY_PROTOTYPE,
    FLAG_DISCOVERY_CREATED,
)


# -----------------------------------------------------------------------------
# Host Status
# -----------------------------------------------------------------------------
# Templates, hosts and proxies share the ``hosts`` table and differ by status.

HOST_STATUS_MONITORED: int = 0
HOST_STATUS_NOT_MONITORED: int = 1
HOST_STATUS_TEMPLATE: int = 3
HOST_STATUS_PROXY_ACTIVE: int = 5
HOST_STATUS_PROXY_PASSIVE: int = 6

HOST_STATUSES: tuple[int, ...] = (HOST_STATUS_MONITORED, HOST_STATUS_NOT_MONITORED)
PROXY_STATUSES: tuple[int, ...] = (HOST_STATUS_PROXY_ACTIVE, HOST_STATUS_PROXY_PASSIVE)


# -----------------------------------------------------------------------------
# Trigger Expressions
# -----------------------------------------------------------------------------

# Expression fields that are rewritten to canonical text before matching.
TRIGGER_EXPRESSION_SOURCES: tuple[str, ...] = ("expression", "recovery_expression")


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------

# Separator used when aggregating graph member hosts into one column.
GRAPH_HOSTS_SEPARATOR: str = ","
