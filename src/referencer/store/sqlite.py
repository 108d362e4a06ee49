"""SQLite-backed Data Store and trigger expression resolver."""

import re
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Any

import structlog

from ..constants import HOST_STATUS_TEMPLATE, HOST_STATUSES, PROXY_STATUSES
from ..core.kinds import EntityKind
from ..utils.exceptions import StoreQueryError, UnknownEntityKindError, UnsupportedFieldError
from .base import DataStore, ExpressionResolver
from .conditions import AllOf, AnyOf, Condition, FieldIn, split_condition
from .schema import init_db

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Source:
    """
    Where the rows of one entity kind live.

    Attributes:
        from_clause: Table or join the rows are selected from
        id_column: Column holding the database ID
        fields: Field name -> SQL expression, for output and filtering
        restriction: Fixed WHERE fragment applied to every query
        flags_column: Column the optional flags restriction applies to
    """

    from_clause: str
    id_column: str
    fields: dict[str, str] = field(default_factory=dict)
    restriction: str | None = None
    flags_column: str | None = None


def _in_list(values: Sequence[int]) -> str:
    return ",".join(str(v) for v in values)


_GRAPH_HOSTS = (
    "(SELECT GROUP_CONCAT(DISTINCT i.hostid)"
    " FROM graphs_items gi JOIN items i ON i.itemid=gi.itemid"
    " WHERE gi.graphid=g.graphid)"
)

SOURCES: dict[str, Source] = {
    EntityKind.GROUP.value: Source(
        "hstgrp g", "g.groupid", {"name": "g.name", "uuid": "g.uuid"}
    ),
    EntityKind.TEMPLATE.value: Source(
        "hosts h",
        "h.hostid",
        {"host": "h.host", "uuid": "h.uuid"},
        restriction=f"h.status={HOST_STATUS_TEMPLATE}",
    ),
    # Templated hosts are included; discovered hosts never are.
    EntityKind.HOST.value: Source(
        "hosts h",
        "h.hostid",
        {"host": "h.host"},
        restriction=(
            f"h.status IN ({_in_list((*HOST_STATUSES, HOST_STATUS_TEMPLATE))}) AND h.flags=0"
        ),
    ),
    EntityKind.ITEM.value: Source(
        "items i",
        "i.itemid",
        {"hostid": "i.hostid", "key_": "i.key_", "uuid": "i.uuid", "flags": "i.flags"},
        flags_column="i.flags",
    ),
    EntityKind.VALUEMAP.value: Source(
        "valuemap vm",
        "vm.valuemapid",
        {"hostid": "vm.hostid", "name": "vm.name", "uuid": "vm.uuid"},
    ),
    EntityKind.TRIGGER.value: Source(
        "triggers t",
        "t.triggerid",
        {
            "description": "t.description",
            "expression": "t.expression",
            "recovery_expression": "t.recovery_expression",
            "uuid": "t.uuid",
            "flags": "t.flags",
        },
        flags_column="t.flags",
    ),
    EntityKind.GRAPH.value: Source(
        "graphs g",
        "g.graphid",
        {"name": "g.name", "uuid": "g.uuid", "hosts": _GRAPH_HOSTS, "flags": "g.flags"},
        flags_column="g.flags",
    ),
    EntityKind.ICONMAP.value: Source("icon_map im", "im.iconmapid", {"name": "im.name"}),
    EntityKind.IMAGE.value: Source("images im", "im.imageid", {"name": "im.name"}),
    EntityKind.MAP.value: Source("sysmaps s", "s.sysmapid", {"name": "s.name"}),
    EntityKind.TEMPLATE_DASHBOARD.value: Source(
        "dashboard d",
        "d.dashboardid",
        {"templateid": "d.templateid", "name": "d.name", "uuid": "d.uuid"},
        restriction="d.templateid IS NOT NULL",
    ),
    EntityKind.MACRO.value: Source(
        "hostmacro hm", "hm.hostmacroid", {"hostid": "hm.hostid", "macro": "hm.macro"}
    ),
    EntityKind.PROXY.value: Source(
        "hosts h",
        "h.hostid",
        {"host": "h.host"},
        restriction=f"h.status IN ({_in_list(PROXY_STATUSES)})",
    ),
    EntityKind.HOST_PROTOTYPE.value: Source(
        "hosts h JOIN host_discovery hd ON h.hostid=hd.hostid"
        " JOIN items i ON hd.parent_itemid=i.itemid",
        "h.hostid",
        {
            "host": "h.host",
            "uuid": "h.uuid",
            "parent_itemid": "hd.parent_itemid",
            "parent_hostid": "i.hostid",
        },
    ),
    EntityKind.HTTPTEST.value: Source(
        "httptest ht",
        "ht.httptestid",
        {"hostid": "ht.hostid", "name": "ht.name", "uuid": "ht.uuid"},
    ),
    EntityKind.HTTPSTEP.value: Source(
        "httpstep hs JOIN httptest ht ON ht.httptestid=hs.httptestid",
        "hs.httpstepid",
        {
            "hostid": "ht.hostid",
            "httptestid": "hs.httptestid",
            "httptest_name": "ht.name",
            "name": "hs.name",
        },
    ),
}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _balanced(parts: list[str], joiner: str) -> str:
    # Pairwise nesting keeps the parsed expression depth logarithmic; SQLite
    # rejects trees deeper than SQLITE_MAX_EXPR_DEPTH (1000 by default).
    if len(parts) <= 2:
        return "(" + joiner.join(parts) + ")"
    middle = len(parts) // 2
    left = _balanced(parts[:middle], joiner)
    right = _balanced(parts[middle:], joiner)
    return "(" + left + joiner + right + ")"


class SQLiteStore(DataStore):
    """
    Data Store over a SQLite copy of the monitored configuration tables.

    Features:
    - One source definition per entity kind (table or join, ID column, fields)
    - Condition trees compiled into parameterized SQL
    - Filters above the bound-parameter limit split into several statements
    - Every value returned as a string, NULL as ""
    """

    def __init__(self, db_path: str | Path, timeout: float = 5.0, create: bool = True) -> None:
        """
        Open (and optionally initialize) the database.

        Args:
            db_path: Path to the SQLite file, or ":memory:"
            timeout: Seconds to wait on a locked database
            create: Create missing tables on open
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(self.db_path, timeout=timeout)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")

        if create:
            init_db(self.conn)

        logger.debug("SQLite store opened", db_path=self.db_path)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def select(
        self,
        kind: str,
        output: Sequence[str],
        where: Condition,
        flags: Sequence[int] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """
        Run a filtered query, splitting it when it binds too many values.

        SQLite caps the bound parameters of one statement
        (``SQLITE_LIMIT_VARIABLE_NUMBER``). A filter above the cap is split
        into parts that each fit, one statement per part, and the rows of all
        parts are merged by ID.
        """
        kind = str(getattr(kind, "value", kind))
        source = SOURCES.get(kind)
        if source is None:
            raise UnknownEntityKindError(kind)

        columns = [f"{source.id_column} AS id"]
        for name in output:
            columns.append(f"{self._field(kind, source, name)} AS {name}")

        clauses: list[str] = []
        params: list[Any] = []

        if source.restriction:
            clauses.append(source.restriction)

        if flags is not None:
            if source.flags_column is None:
                raise UnsupportedFieldError(kind, "flags")
            if flags:
                clauses.append(f"{source.flags_column} IN ({','.join('?' for _ in flags)})")
                params.extend(int(flag) for flag in flags)
            else:
                clauses.append("1=0")

        limit = self.conn.getlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER) - len(params)
        try:
            parts = split_condition(where, limit)
        except ValueError as e:
            raise StoreQueryError(kind, str(e), original_error=e) from e

        rows: dict[str, dict[str, Any]] = {}
        for part in parts:
            where_sql, where_params = self.compile(kind, source, part)
            sql = (
                f"SELECT {','.join(columns)} FROM {source.from_clause}"
                f" WHERE {' AND '.join([*clauses, where_sql])}"
            )

            try:
                fetched = self.conn.execute(sql, [*params, *where_params]).fetchall()
            except sqlite3.Error as e:
                raise StoreQueryError(kind, str(e), original_error=e) from e

            for row in fetched:
                rows[_text(row["id"])] = {name: _text(row[name]) for name in output}

        logger.debug("Store query executed", kind=kind, rows=len(rows), statements=len(parts))
        return rows

    def compile(self, kind: str, source: Source, condition: Condition) -> tuple[str, list[Any]]:
        """
        Compile a condition tree into a SQL fragment and its parameters.

        Args:
            kind: Entity kind (for error messages)
            source: Source definition the field names resolve against
            condition: Condition tree

        Returns:
            Tuple of (sql, params)
        """
        if isinstance(condition, FieldIn):
            if not condition.values:
                return "1=0", []

            column = self._field(kind, source, condition.field)
            placeholders = ",".join("?" for _ in condition.values)
            return f"{column} IN ({placeholders})", list(condition.values)

        if isinstance(condition, AllOf):
            if not condition.conditions:
                return "1=1", []
            joiner = " AND "
        elif isinstance(condition, AnyOf):
            if not condition.conditions:
                return "1=0", []
            joiner = " OR "
        else:
            raise TypeError(f"Unsupported condition: {condition!r}")

        parts = []
        params = []
        for nested in condition.conditions:
            nested_sql, nested_params = self.compile(kind, source, nested)
            parts.append(nested_sql)
            params.extend(nested_params)
        return _balanced(parts, joiner), params

    @staticmethod
    def _field(kind: str, source: Source, name: str) -> str:
        try:
            return source.fields[name]
        except KeyError:
            raise UnsupportedFieldError(kind, name) from None


# {functionid} placeholders inside stored expressions
_FUNCTION_REF = re.compile(r"\{(\d+)\}")


class SQLiteExpressionResolver(ExpressionResolver):
    """
    Rewrite ``{functionid}`` references into ``name(/host/key,params)``.

    The stored parameter starts with ``$`` standing for the item reference,
    e.g. ``$,#3`` becomes ``last(/host/key,#3)``. Unknown function IDs are
    left as they are.
    """

    def __init__(self, store: SQLiteStore) -> None:
        self.store = store

    def resolve_trigger_expressions(
        self, triggers: dict[str, dict[str, Any]], sources: Sequence[str]
    ) -> dict[str, dict[str, Any]]:
        functionids: set[int] = set()
        for trigger in triggers.values():
            for source in sources:
                functionids.update(int(m) for m in _FUNCTION_REF.findall(trigger.get(source, "")))

        functions = self._load_functions(sorted(functionids))

        def expand(match: re.Match[str]) -> str:
            return functions.get(match.group(1), match.group(0))

        resolved: dict[str, dict[str, Any]] = {}
        for triggerid, trigger in triggers.items():
            resolved[triggerid] = dict(trigger)
            for source in sources:
                if source in trigger:
                    resolved[triggerid][source] = _FUNCTION_REF.sub(expand, trigger[source])
        return resolved

    def _load_functions(self, functionids: list[int]) -> dict[str, str]:
        if not functionids:
            return {}

        functions: dict[str, str] = {}
        step = self.store.conn.getlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER)

        for i in range(0, len(functionids), step):
            chunk = functionids[i : i + step]
            sql = (
                "SELECT f.functionid,f.name,f.parameter,i.key_,h.host"
                " FROM functions f"
                " JOIN items i ON i.itemid=f.itemid"
                " JOIN hosts h ON h.hostid=i.hostid"
                f" WHERE f.functionid IN ({','.join('?' for _ in chunk)})"
            )
            try:
                fetched = self.store.conn.execute(sql, chunk).fetchall()
            except sqlite3.Error as e:
                raise StoreQueryError(EntityKind.TRIGGER.value, str(e), original_error=e) from e

            for row in fetched:
                functions[str(row["functionid"])] = self.format_function(
                    row["name"], row["host"], row["key_"], row["parameter"]
                )

        return functions

    @staticmethod
    def format_function(name: str, host: str, key: str, parameter: str) -> str:
        """Render one trigger function call in canonical form."""
        reference = f"/{host}/{key}"
        parameter = parameter or ""

        if parameter.startswith("$"):
            return f"{name}({reference}{parameter[1:]})"
        if parameter:
            return f"{name}({reference},{parameter})"
        return f"{name}({reference})"
