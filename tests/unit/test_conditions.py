"""Unit tests for filter conditions."""

import pytest

from referencer.store.conditions import (
    AllOf,
    AnyOf,
    FieldIn,
    all_of,
    any_of,
    condition_size,
    field_in,
    matches,
    split_condition,
)


class TestBuilders:
    def test_field_in_dedupes_and_keeps_order(self):
        condition = field_in("host", ["b", "a", "b", 10])

        assert condition == FieldIn(field="host", values=("b", "a", "10"))

    def test_field_in_accepts_mapping_keys(self):
        assert field_in("host", {"Host A": {}, "Host B": {}}).values == ("Host A", "Host B")

    def test_nested_builders(self):
        condition = any_of(all_of(field_in("hostid", ["1"])), field_in("uuid", []))

        assert isinstance(condition, AnyOf)
        assert isinstance(condition.conditions[0], AllOf)

    def test_conditions_are_hashable(self):
        assert len({field_in("a", ["1"]), field_in("a", ["1"])}) == 1


class TestEvaluation:
    ROW = {"hostid": "10084", "key_": "agent.ping", "uuid": ""}

    def test_matches(self):
        owned = all_of(field_in("hostid", ["10084"]), field_in("key_", ["agent.ping"]))

        assert matches(owned, self.ROW)
        assert not matches(field_in("key_", ["agent.version"]), self.ROW)
        assert matches(any_of(field_in("uuid", ["x"]), owned), self.ROW)

    def test_empty_sets(self):
        assert not matches(field_in("key_", []), self.ROW)
        assert not matches(any_of(), self.ROW)
        assert matches(all_of(), self.ROW)

    def test_missing_field_never_matches(self):
        assert not matches(field_in("name", [""]), self.ROW)


class TestSplitting:
    ROWS = [
        {"hostid": hostid, "key_": f"key-{i}", "uuid": f"uuid-{i}"}
        for hostid in ("1", "2", "3")
        for i in range(8)
    ]

    def matching(self, parts):
        return [row for row in self.ROWS if any(matches(part, row) for part in parts)]

    def test_condition_size(self):
        condition = any_of(
            all_of(field_in("hostid", ["1"]), field_in("key_", ["a", "b"])), field_in("uuid", [])
        )

        assert condition_size(condition) == 3

    def test_small_condition_is_kept(self):
        condition = field_in("key_", ["a", "b"])

        assert split_condition(condition, 2) == [condition]

    def test_field_in_is_chunked(self):
        parts = split_condition(field_in("key_", [f"key-{i}" for i in range(5)]), 2)

        assert [part.values for part in parts] == [
            ("key-0", "key-1"),
            ("key-2", "key-3"),
            ("key-4",),
        ]

    def test_parts_match_the_same_rows(self):
        condition = any_of(
            *(
                all_of(
                    field_in("hostid", [hostid]),
                    any_of(
                        field_in("key_", [f"key-{i}" for i in range(0, 8, 2)]),
                        field_in("uuid", [f"uuid-{i}" for i in range(1, 8, 3)]),
                    ),
                )
                for hostid in ("1", "3")
            )
        )

        parts = split_condition(condition, 4)

        assert all(condition_size(part) <= 4 for part in parts)
        assert len(parts) > 1
        assert self.matching(parts) == self.matching([condition])

    def test_and_keeps_smaller_members_in_every_part(self):
        condition = all_of(field_in("hostid", ["1"]), field_in("key_", ["a", "b", "c"]))

        parts = split_condition(condition, 2)

        assert parts == [
            all_of(field_in("hostid", ["1"]), field_in("key_", ["a"])),
            all_of(field_in("hostid", ["1"]), field_in("key_", ["b"])),
            all_of(field_in("hostid", ["1"]), field_in("key_", ["c"])),
        ]

    def test_unsplittable_and(self):
        condition = all_of(field_in("hostid", ["1", "2"]), field_in("key_", ["a", "b"]))

        with pytest.raises(ValueError):
            split_condition(condition, 2)
