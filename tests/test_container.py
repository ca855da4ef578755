"""Tests for ReactiveDict, ReactiveList, and create()."""

import pytest

from snapstate import (
    CyclicStateError,
    ReactiveDict,
    ReactiveList,
    Snapshot,
    SnapshotList,
    create,
    get_version,
    is_structured,
    snapshot,
    subscribe,
)


class TestCreate:
    def test_starts_at_version_zero(self):
        c = create({"count": 0, "nested": {"x": 1}, "items": [1, {"y": 2}]})
        assert c.version == 0
        assert c["nested"].version == 0
        assert c["items"][1].version == 0

    def test_wraps_nested_values(self):
        c = create({"nested": {"x": 1}, "items": [1, 2]})
        assert isinstance(c, ReactiveDict)
        assert isinstance(c["nested"], ReactiveDict)
        assert isinstance(c["items"], ReactiveList)

    def test_empty(self):
        c = create()
        assert isinstance(c, ReactiveDict)
        assert len(c) == 0

    def test_list_root(self):
        c = create([1, {"a": 2}])
        assert isinstance(c, ReactiveList)
        assert c[0] == 1
        assert c[1]["a"] == 2

    def test_rejects_scalar(self):
        with pytest.raises(TypeError):
            create(42)

    def test_does_not_alias_input(self):
        raw = {"nested": {"x": 1}}
        c = create(raw)
        c["nested"]["x"] = 2
        assert raw == {"nested": {"x": 1}}

    def test_cycle_raises(self):
        raw = {"a": 1}
        raw["self"] = raw
        with pytest.raises(CyclicStateError):
            create(raw)

    def test_shared_non_cyclic_value_is_copied_twice(self):
        shared = {"x": 1}
        c = create({"a": shared, "b": shared})
        assert c["a"] is not c["b"]
        c["a"]["x"] = 2
        assert c["b"]["x"] == 1

    def test_is_structured(self):
        assert is_structured({})
        assert is_structured([])
        assert is_structured(create({}))
        assert is_structured(create({}).snapshot())
        assert not is_structured("text")
        assert not is_structured((1, 2))
        assert not is_structured(3)


class TestReactiveDict:
    def test_get(self):
        c = create({"count": 0})
        assert c.get("count") == 0
        assert c["count"] == 0
        assert c.get("missing") is None
        assert c.get("missing", 5) == 5

    def test_reads_do_not_change_version(self):
        c = create({"count": 0, "nested": {"x": 1}})
        c.get("count")
        c["nested"].get("x")
        list(c.items())
        len(c)
        "count" in c
        c.snapshot()
        assert c.version == 0

    def test_set_increments_by_one(self):
        c = create({"count": 0})
        c.set("count", 1)
        assert c.version == 1
        c["count"] = 2
        assert c.version == 2
        assert get_version(c) == 2

    def test_set_same_value_still_increments(self):
        c = create({"count": 0})
        c["count"] = 0
        assert c.version == 1

    def test_delete(self):
        c = create({"a": 1, "b": 2})
        c.delete("a")
        assert "a" not in c
        assert c.version == 1
        del c["b"]
        assert len(c) == 0
        assert c.version == 2

    def test_delete_missing_raises(self):
        c = create({})
        with pytest.raises(KeyError):
            del c["nope"]
        assert c.version == 0

    def test_has(self):
        c = create({"a": None})
        assert c.has("a")
        assert not c.has("b")

    def test_pop(self):
        c = create({"a": 1})
        assert c.pop("a") == 1
        assert c.pop("a", "default") == "default"
        assert c.version == 1
        with pytest.raises(KeyError):
            c.pop("a")

    def test_setdefault(self):
        c = create({"a": 1})
        assert c.setdefault("a", 99) == 1
        assert c.version == 0
        assert c.setdefault("b", 42) == 42
        assert c.version == 1

    def test_update_is_one_mutation(self):
        c = create({"a": 1})
        c.update({"b": 2}, c={"x": 3})
        assert c["b"] == 2
        assert isinstance(c["c"], ReactiveDict)
        assert c.version == 1

    def test_clear(self):
        c = create({"a": 1, "nested": {"x": 1}})
        nested = c["nested"]
        c.clear()
        assert len(c) == 0
        assert c.version == 1
        nested["x"] = 2
        assert c.version == 1

    def test_keys_values_items(self):
        c = create({"a": 1, "b": 2})
        assert list(c.keys()) == ["a", "b"]
        assert list(c.values()) == [1, 2]
        assert list(c.items()) == [("a", 1), ("b", 2)]
        assert list(c) == ["a", "b"]

    def test_repr(self):
        c = create({"a": 1})
        assert "ReactiveDict" in repr(c)
        assert "version=0" in repr(c)


class TestReactiveList:
    def test_basic_reads(self):
        c = create([1, 2, 3])
        assert len(c) == 3
        assert c[0] == 1
        assert list(c) == [1, 2, 3]
        assert 2 in c
        assert c.get(10) is None
        assert c.index(3) == 2

    def test_mutations_increment(self):
        c = create([1, 2])
        c.append(3)
        c.insert(0, 0)
        c[1] = 10
        assert list(c) == [0, 10, 2, 3]
        assert c.pop() == 3
        c.remove(10)
        assert list(c) == [0, 2]
        assert c.version == 5

    def test_extend_is_one_mutation(self):
        c = create([])
        c.extend([1, {"a": 2}])
        assert c.version == 1
        assert isinstance(c[1], ReactiveDict)

    def test_slices(self):
        c = create([1, 2, 3, 4])
        c[1:3] = [20, 30]
        assert list(c) == [1, 20, 30, 4]
        del c[:2]
        assert list(c) == [30, 4]
        assert c.version == 2

    def test_bad_extended_slice_keeps_children_attached(self):
        c = create([{"a": 1}, {"a": 2}, {"a": 3}])
        with pytest.raises(ValueError):
            c[::2] = [{"a": 9}]
        assert c.version == 0
        assert [child["a"] for child in c] == [1, 2, 3]
        c[0]["a"] = 5
        assert c.version == 1

    def test_slice_assignment_detaches_replaced(self):
        c = create([{"a": 1}, {"a": 2}])
        old = c[0]
        c[0:1] = [{"a": 9}]
        old["a"] = 5
        assert c.version == 1
        c[0]["a"] = 10
        assert c.version == 2

    def test_clear_detaches(self):
        c = create([{"x": 1}])
        child = c[0]
        c.clear()
        child["x"] = 2
        assert c.version == 1

    def test_pop_detaches(self):
        c = create([{"x": 1}])
        child = c.pop()
        child["x"] = 2
        assert c.version == 1

    def test_delete_out_of_range(self):
        c = create([1])
        with pytest.raises(IndexError):
            c.delete(5)
        assert c.version == 0


class TestPropagation:
    def test_nested_mutation_bumps_ancestors(self):
        c = create({"count": 0, "nested": {"x": 1}})
        nested = c.get("nested")
        nested.set("x", 2)
        assert nested.version == 1
        assert c.version == 1

    def test_deep_chain(self):
        c = create({"a": {"b": {"c": [0]}}})
        c["a"]["b"]["c"].append(1)
        assert c["a"]["b"].version == 1
        assert c["a"].version == 1
        assert c.version == 1

    def test_nested_notifies_root_listeners(self):
        c = create({"nested": {"x": 1}})
        calls = []
        c.add_listener(lambda: calls.append(c.version))
        c["nested"]["x"] = 2
        assert calls == [1]

    def test_detach_on_overwrite(self):
        c = create({"b": {"x": 1}})
        b1 = c["b"]
        c["b"] = {"x": 2}
        assert c.version == 1
        b1["x"] = 99
        assert c.version == 1
        c["b"]["x"] = 3
        assert c.version == 2

    def test_detach_on_overwrite_with_scalar(self):
        c = create({"b": {"x": 1}})
        b1 = c["b"]
        c["b"] = None
        b1["x"] = 2
        assert c.version == 1

    def test_detach_on_delete(self):
        c = create({"b": {"x": 1}})
        b1 = c["b"]
        del c["b"]
        b1["x"] = 2
        assert c.version == 1

    def test_assigning_container_copies_it(self):
        a = create({"x": 1})
        c = create({})
        c["a"] = a
        assert c["a"] is not a
        a["x"] = 2
        assert c.version == 1
        assert c["a"]["x"] == 1
        c["a"]["x"] = 3
        assert a["x"] == 2

    def test_assigning_snapshot_makes_container(self):
        c = create({"a": {"x": 1}})
        c["b"] = c["a"].snapshot()
        assert isinstance(c["b"], ReactiveDict)
        c["b"]["x"] = 5
        assert c["a"]["x"] == 1


class TestListeners:
    def test_each_listener_once_per_mutation(self):
        c = create({"a": 0})
        log = []
        c.add_listener(lambda: log.append("first"))
        c.add_listener(lambda: log.append("second"))
        c["a"] = 1
        assert log == ["first", "second"]

    def test_add_is_idempotent(self):
        c = create({"a": 0})
        log = []

        def listener():
            log.append(1)

        c.add_listener(listener)
        c.add_listener(listener)
        c["a"] = 1
        assert log == [1]

    def test_removed_listener_not_called(self):
        c = create({"a": 0})
        log = []

        def listener():
            log.append(1)

        c.add_listener(listener)
        c.remove_listener(listener)
        c.remove_listener(listener)  # idempotent
        c["a"] = 1
        assert log == []

    def test_subscribe_returns_unsubscribe(self):
        c = create({"a": 0})
        log = []
        unsubscribe = subscribe(c, lambda: log.append(c["a"]))
        c["a"] = 1
        unsubscribe()
        c["a"] = 2
        assert log == [1]

    def test_listener_added_during_fanout_waits(self):
        c = create({"a": 0})
        log = []

        def late():
            log.append("late")

        def first():
            log.append("first")
            c.add_listener(late)

        c.add_listener(first)
        c["a"] = 1
        assert log == ["first"]
        c["a"] = 2
        assert log == ["first", "first", "late"]

    def test_nested_mutation_during_notification(self):
        c = create({"a": 0, "b": 0})
        versions = []

        def listener():
            versions.append(c.version)
            if c["b"] == 0:
                c["b"] = 1

        c.add_listener(listener)
        c["a"] = 1
        assert versions == [1, 2]
        assert c.version == 2


class TestSnapshot:
    def test_concrete_scenario(self):
        c = create({"count": 0, "nested": {"x": 1}})
        first = c.snapshot()
        assert first["count"] == 0
        c.set("count", 1)
        assert c.version == 1
        second = c.snapshot()
        assert second["count"] == 1
        assert second is not first
        c.get("nested").set("x", 2)
        assert c.get("nested").version == 1
        assert c.version == 2
        assert c.snapshot()["nested"]["x"] == 2

    def test_cached_within_version(self):
        c = create({"a": {"b": 1}})
        assert c.snapshot() is c.snapshot()
        assert snapshot(c) is c.snapshot()

    def test_immutable_after_mutation(self):
        c = create({"count": 0, "nested": {"x": 1}, "items": [1]})
        snap = c.snapshot()
        c["count"] = 5
        c["nested"]["x"] = 5
        c["items"].append(2)
        assert snap["count"] == 0
        assert snap["nested"]["x"] == 1
        assert list(snap["items"]) == [1]

    def test_snapshot_rejects_mutation(self):
        snap = create({"a": 1, "items": [1]}).snapshot()
        with pytest.raises(TypeError):
            snap["a"] = 2
        with pytest.raises(TypeError):
            snap["items"][0] = 2

    def test_unchanged_subtree_is_shared(self):
        c = create({"left": {"x": 1}, "right": {"y": 1}})
        before = c.snapshot()
        c["right"]["y"] = 2
        after = c.snapshot()
        assert after is not before
        assert after["left"] is before["left"]
        assert after["right"] is not before["right"]

    def test_structural_equality(self):
        a = create({"x": [1, {"y": 2}]})
        b = create({"x": [1, {"y": 2}]})
        assert a.snapshot() == b.snapshot()
        assert a.snapshot() == {"x": [1, {"y": 2}]}

    def test_snapshot_types(self):
        snap = create({"items": [1]}).snapshot()
        assert isinstance(snap, Snapshot)
        assert isinstance(snap["items"], SnapshotList)

    def test_deleted_field_absent(self):
        c = create({"a": 1, "b": 2})
        del c["a"]
        assert dict(c.snapshot()) == {"b": 2}
