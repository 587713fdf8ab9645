"""
Unit tests for the set diff behind tag and alignment sync. No database.
"""
from topic_engine.services.reconcile import reconcile


def test_reconcile_adds_and_removes():
    diff = reconcile({"a", "b"}, {"b", "c"})
    assert diff.to_add == {"c"}
    assert diff.to_remove == {"a"}
    assert not diff.is_noop


def test_reconcile_same_sets_is_noop():
    diff = reconcile(["x", "y"], ["y", "x", "x"])
    assert diff.to_add == frozenset()
    assert diff.to_remove == frozenset()
    assert diff.is_noop


def test_reconcile_empty_desired_removes_everything():
    diff = reconcile([1, 2, 3], [])
    assert diff.to_remove == {1, 2, 3}
    assert diff.to_add == frozenset()


def test_reconcile_from_nothing():
    diff = reconcile([], ["fractions"])
    assert diff.to_add == {"fractions"}
    assert diff.to_remove == frozenset()
