"""Unit tests for the SQLite Data Store and expression resolver."""

import sqlite3

import pytest

from referencer.core.kinds import EntityKind
from referencer.store.conditions import all_of, any_of, field_in
from referencer.store.schema import SCHEMA_VERSION
from referencer.store.sqlite import SOURCES, SQLiteExpressionResolver, SQLiteStore
from referencer.utils.exceptions import (
    StoreQueryError,
    UnknownEntityKindError,
    UnsupportedFieldError,
)


class TestSelect:
    """Filtered queries return string rows keyed by string IDs."""

    def test_rows_are_strings(self, store):
        rows = store.select("item", ["hostid", "key_"], field_in("key_", ["system.cpu.load"]))

        assert rows == {
            "23001": {"hostid": "10084", "key_": "system.cpu.load"},
            "23002": {"hostid": "10001", "key_": "system.cpu.load"},
        }

    def test_accepts_entity_kind(self, store):
        rows = store.select(EntityKind.IMAGE, ["name"], field_in("name", ["Server_(96)"]))

        assert rows == {"5": {"name": "Server_(96)"}}

    def test_graph_member_hosts_aggregated(self, store):
        rows = store.select("graph", ["name", "hosts"], field_in("name", ["CPU load"]))

        assert sorted(rows["700"]["hosts"].split(",")) == ["10001", "10084"]

    def test_empty_value_set_matches_nothing(self, store):
        assert store.select("host", ["host"], field_in("host", [])) == {}

    def test_nested_conditions(self, store):
        where = any_of(
            all_of(field_in("hostid", ["10084"]), field_in("key_", ["net.if.in[eth0]"])),
            all_of(
                field_in("hostid", ["10001"]),
                field_in("uuid", ["0a4d1e9c8d3b4fd0a8d2f3e1b5c6d7e8"]),
            ),
        )

        assert set(store.select("item", ["key_"], where)) == {"23004", "23002"}

    def test_flags_restriction(self, store):
        where = field_in("description", ["High CPU load", "Rule level problem"])

        assert set(store.select("trigger", ["description"], where, flags=[0, 2, 4])) == {
            "13001",
            "13002",
        }
        assert set(store.select("trigger", ["description"], where, flags=[1])) == {"13003"}
        assert store.select("trigger", ["description"], where, flags=[]) == {}

    def test_fixed_restriction_per_kind(self, store):
        where = field_in("host", ["Template OS Linux", "Host A", "Proxy 1"])

        assert set(store.select("template", ["host"], where)) == {"10001"}
        assert set(store.select("proxy", ["host"], where)) == {"10100"}

    def test_unknown_kind(self, store):
        with pytest.raises(UnknownEntityKindError):
            store.select("widget", ["name"], field_in("name", ["x"]))

    def test_unknown_output_field(self, store):
        with pytest.raises(UnsupportedFieldError, match="color"):
            store.select("host", ["color"], field_in("host", ["Host A"]))

    def test_flags_on_kind_without_flags(self, store):
        with pytest.raises(UnsupportedFieldError, match="flags"):
            store.select("group", ["name"], field_in("name", ["x"]), flags=[0])

    def test_engine_error_is_wrapped(self, store):
        store.conn.execute("DROP TABLE icon_map")

        with pytest.raises(StoreQueryError, match="iconmap") as exc_info:
            store.select("iconmap", ["name"], field_in("name", ["Default icons"]))
        assert exc_info.value.original_error is not None

    def test_every_kind_has_a_source(self):
        assert set(SOURCES) == {kind.value for kind in EntityKind}


class TestCompile:
    """Condition compilation into parameterized SQL."""

    def test_field_in(self, store):
        source = SOURCES["host"]

        sql, params = store.compile("host", source, field_in("host", ["a", "b"]))

        assert sql == "h.host IN (?,?)"
        assert params == ["a", "b"]

    def test_empty_any_of_and_all_of(self, store):
        source = SOURCES["host"]

        assert store.compile("host", source, any_of()) == ("1=0", [])
        assert store.compile("host", source, all_of()) == ("1=1", [])

    def test_long_chains_nest_pairwise(self, store):
        condition = any_of(*(field_in("host", [name]) for name in "abcd"))

        sql, params = store.compile("host", SOURCES["host"], condition)

        assert sql == "((h.host IN (?) OR h.host IN (?)) OR (h.host IN (?) OR h.host IN (?)))"
        assert params == ["a", "b", "c", "d"]

    def test_unknown_filter_field(self, store):
        with pytest.raises(UnsupportedFieldError):
            store.compile("host", SOURCES["host"], field_in("color", ["red"]))


class TestVariableLimit:
    """Filters binding more values than SQLite accepts in one statement."""

    @pytest.fixture
    def statements(self, store):
        store.conn.setlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER, 100)
        executed: list[str] = []
        store.conn.set_trace_callback(executed.append)
        yield executed
        store.conn.set_trace_callback(None)

    def test_large_filter_runs_as_several_statements(self, store, statements):
        names = [f"group-{i}" for i in range(150)] + ["Linux servers"]
        uuids = [f"uuid-{i}" for i in range(150)] + ["a571c0d144b14fd4a87a9d9b2aa9fcd6"]

        rows = store.select(
            "group", ["name", "uuid"], any_of(field_in("name", names), field_in("uuid", uuids))
        )

        assert rows == {"1": {"name": "Linux servers", "uuid": "a571c0d144b14fd4a87a9d9b2aa9fcd6"}}
        assert len([sql for sql in statements if sql.startswith("SELECT")]) == 4

    def test_flag_parameters_count_against_the_limit(self, store):
        store.conn.setlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER, 10)
        descriptions = [f"trigger-{i}" for i in range(20)] + ["High CPU load"]

        rows = store.select(
            "trigger", ["description"], field_in("description", descriptions), flags=(0, 2, 4)
        )

        assert set(rows) == {"13001", "13002"}

    def test_resolver_batch_above_the_limit(self, referencer, store, statements):
        groups = {f"group-{i}": {"uuid": f"uuid-{i}"} for i in range(300)}
        groups["Linux servers"] = {}
        referencer.add_groups(groups)

        assert referencer.find_group_id_by_name("Linux servers") == "1"
        assert referencer.find_group_id_by_name("group-0") is None
        assert referencer.stats.queries["group"] == 1

    def test_unsplittable_filter(self, store):
        store.conn.setlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER, 2)
        condition = all_of(field_in("hostid", ["10001", "10084"]), field_in("key_", ["a", "b"]))

        with pytest.raises(StoreQueryError, match="item"):
            store.select("item", ["key_"], condition)


class TestSchema:
    def test_version_recorded_once(self, tmp_path):
        db_path = tmp_path / "nested" / "monitoring.db"

        SQLiteStore(db_path).close()
        with SQLiteStore(db_path) as store:
            versions = store.conn.execute("SELECT version FROM schema_version").fetchall()

        assert [row[0] for row in versions] == [SCHEMA_VERSION]


class TestExpressionResolver:
    """Function placeholders become canonical function calls."""

    @pytest.mark.parametrize(
        "parameter,expected",
        [
            ("$", "last(/Host A/agent.ping)"),
            ("$,#3", "last(/Host A/agent.ping,#3)"),
            ("#3", "last(/Host A/agent.ping,#3)"),
            ("", "last(/Host A/agent.ping)"),
        ],
    )
    def test_format_function(self, parameter, expected):
        format_function = SQLiteExpressionResolver.format_function
        rendered = format_function("last", "Host A", "agent.ping", parameter)
        assert rendered == expected

    def test_expands_requested_sources_only(self, store):
        resolver = SQLiteExpressionResolver(store)
        triggers = {
            "13002": {"expression": "{50002}>5", "recovery_expression": "{50003}<2", "uuid": "{1}"}
        }

        resolved = resolver.resolve_trigger_expressions(
            triggers, ["expression", "recovery_expression"]
        )

        assert resolved["13002"]["expression"] == "last(/Host A/system.cpu.load)>5"
        assert resolved["13002"]["recovery_expression"] == "last(/Host A/system.cpu.load)<2"
        assert resolved["13002"]["uuid"] == "{1}"
        assert triggers["13002"]["expression"] == "{50002}>5"

    def test_unknown_function_left_in_place(self, store):
        resolver = SQLiteExpressionResolver(store)

        resolved = resolver.resolve_trigger_expressions(
            {"1": {"expression": "{99999}=0"}}, ["expression"]
        )

        assert resolved["1"]["expression"] == "{99999}=0"
