"""SQLite schema for the monitored configuration tables the resolver reads."""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS hstgrp (
    groupid     INTEGER PRIMARY KEY,
    name        TEXT NOT NULL,
    uuid        TEXT NOT NULL DEFAULT ''
);

-- Templates (status 3), hosts (0/1) and proxies (5/6) share one table.
CREATE TABLE IF NOT EXISTS hosts (
    hostid      INTEGER PRIMARY KEY,
    host        TEXT NOT NULL,
    name        TEXT NOT NULL DEFAULT '',
    status      INTEGER NOT NULL DEFAULT 0,
    flags       INTEGER NOT NULL DEFAULT 0,
    uuid        TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS items (
    itemid      INTEGER PRIMARY KEY,
    hostid      INTEGER NOT NULL REFERENCES hosts(hostid) ON DELETE CASCADE,
    key_        TEXT NOT NULL,
    name        TEXT NOT NULL DEFAULT '',
    flags       INTEGER NOT NULL DEFAULT 0,
    uuid        TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS valuemap (
    valuemapid  INTEGER PRIMARY KEY,
    hostid      INTEGER NOT NULL REFERENCES hosts(hostid) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    uuid        TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS triggers (
    triggerid           INTEGER PRIMARY KEY,
    description         TEXT NOT NULL,
    expression          TEXT NOT NULL,
    recovery_expression TEXT NOT NULL DEFAULT '',
    flags               INTEGER NOT NULL DEFAULT 0,
    uuid                TEXT NOT NULL DEFAULT ''
);

-- Trigger expressions reference functions as {functionid}.
CREATE TABLE IF NOT EXISTS functions (
    functionid  INTEGER PRIMARY KEY,
    itemid      INTEGER NOT NULL REFERENCES items(itemid) ON DELETE CASCADE,
    triggerid   INTEGER NOT NULL REFERENCES triggers(triggerid) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    parameter   TEXT NOT NULL DEFAULT '$'
);

CREATE TABLE IF NOT EXISTS graphs (
    graphid     INTEGER PRIMARY KEY,
    name        TEXT NOT NULL,
    flags       INTEGER NOT NULL DEFAULT 0,
    uuid        TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS graphs_items (
    gitemid     INTEGER PRIMARY KEY,
    graphid     INTEGER NOT NULL REFERENCES graphs(graphid) ON DELETE CASCADE,
    itemid      INTEGER NOT NULL REFERENCES items(itemid) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS icon_map (
    iconmapid   INTEGER PRIMARY KEY,
    name        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS images (
    imageid     INTEGER PRIMARY KEY,
    name        TEXT NOT NULL,
    imagetype   INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS sysmaps (
    sysmapid    INTEGER PRIMARY KEY,
    name        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS dashboard (
    dashboardid INTEGER PRIMARY KEY,
    name        TEXT NOT NULL,
    templateid  INTEGER REFERENCES hosts(hostid) ON DELETE CASCADE,
    uuid        TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS hostmacro (
    hostmacroid INTEGER PRIMARY KEY,
    hostid      INTEGER NOT NULL REFERENCES hosts(hostid) ON DELETE CASCADE,
    macro       TEXT NOT NULL,
    value       TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS httptest (
    httptestid  INTEGER PRIMARY KEY,
    hostid      INTEGER NOT NULL REFERENCES hosts(hostid) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    uuid        TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS httpstep (
    httpstepid  INTEGER PRIMARY KEY,
    httptestid  INTEGER NOT NULL REFERENCES httptest(httptestid) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    no          INTEGER NOT NULL DEFAULT 0
);

-- Links a host prototype (hosts.flags=2) to its discovery rule.
CREATE TABLE IF NOT EXISTS host_discovery (
    hostid          INTEGER PRIMARY KEY REFERENCES hosts(hostid) ON DELETE CASCADE,
    parent_itemid   INTEGER REFERENCES items(itemid) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_hosts_host ON hosts(host);
CREATE INDEX IF NOT EXISTS idx_items_host_key ON items(hostid, key_);
CREATE INDEX IF NOT EXISTS idx_items_uuid ON items(uuid);
CREATE INDEX IF NOT EXISTS idx_triggers_description ON triggers(description);
CREATE INDEX IF NOT EXISTS idx_functions_trigger ON functions(triggerid);
CREATE INDEX IF NOT EXISTS idx_graphs_items_graph ON graphs_items(graphid);
CREATE INDEX IF NOT EXISTS idx_httptest_host ON httptest(hostid, name);
"""


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript(SCHEMA_SQL)

    cur = conn.execute("SELECT COUNT(*) FROM schema_version")
    if cur.fetchone()[0] == 0:
        conn.execute("INSERT INTO schema_version VALUES (?)", (SCHEMA_VERSION,))
    conn.commit()
