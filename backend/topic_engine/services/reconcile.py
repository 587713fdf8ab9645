"""
Set diff used by association sync: what to insert and what to delete so `existing` becomes `desired`.
Pure; no database access.
"""
from typing import Hashable, Iterable, NamedTuple


class Reconciliation(NamedTuple):
    to_add: frozenset
    to_remove: frozenset

    @property
    def is_noop(self) -> bool:
        return not self.to_add and not self.to_remove


def reconcile(existing: Iterable[Hashable], desired: Iterable[Hashable]) -> Reconciliation:
    existing_set = frozenset(existing)
    desired_set = frozenset(desired)
    return Reconciliation(to_add=desired_set - existing_set, to_remove=existing_set - desired_set)
