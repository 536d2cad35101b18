"""Group membership reconciliation.

Converges the actual member list of a group toward the declared one:

1. read the raw member names from the directory;
2. old-declared members still present but no longer declared are removed;
3. new-declared members that are absent *and* were not declared before are
   added (a member declared earlier is assumed to have been handled by a
   previous run, even if that run never managed to apply it);
4. members present but never declared ("unmanaged drift") are removed too,
   unless `ignore_unmanaged` is set;
5. both sets are resolved to DNs before anything is written, so an unknown
   name aborts the run with no partial changes;
6. one modify request carries the add and remove deltas, or nothing is sent.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .errors import DirectoryError, NotFoundError, with_context
from .groups import GroupRepository
from .models import AttributeDelta, MembershipDelta
from .store import ObjectStore
from .utils import fold_name

log = logging.getLogger(__name__)


def _index(names: Iterable[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for n in names:
        key = fold_name(n)
        if key:
            out.setdefault(key, n)
    return out


def compute_membership_delta(
    actual: Iterable[str],
    old: Iterable[str],
    new: Iterable[str],
    ignore_unmanaged: bool,
) -> MembershipDelta:
    actual_ix, old_ix, new_ix = _index(actual), _index(old), _index(new)

    to_remove = {k for k in old_ix if k in actual_ix and k not in new_ix}
    to_add = {k for k in new_ix if k not in actual_ix and k not in old_ix}

    drift = {k for k in actual_ix if k not in to_remove and k not in new_ix}
    if drift:
        if ignore_unmanaged:
            log.info("Участники вне управления оставлены без изменений: %s", sorted(actual_ix[k] for k in drift))
        else:
            log.info("Участники, добавленные вне управления, будут удалены: %s", sorted(actual_ix[k] for k in drift))
            to_remove |= drift

    return MembershipDelta(
        to_add=frozenset(new_ix[k] for k in to_add),
        # Directory spelling wins for names we are about to remove.
        to_remove=frozenset(actual_ix.get(k) or old_ix[k] for k in to_remove),
    )


class MembershipReconciler:
    def __init__(self, groups: GroupRepository, store: ObjectStore) -> None:
        self.groups = groups
        self.store = store

    def reconcile(
        self,
        name: str,
        base_ou: str,
        user_base: str,
        old: Iterable[str],
        new: Iterable[str],
        ignore_unmanaged: bool = False,
    ) -> MembershipDelta:
        """Apply the membership delta for group `name` and return it.

        An empty delta means the group had already converged and nothing
        was written.
        """
        old, new = list(old), list(new)
        op = "update group members"

        obj = self.groups.find(name, base_ou)
        if obj is None:
            raise NotFoundError(f"group {name} not found under {base_ou}", operation=op, target=name)
        actual = self.groups.member_names(obj.dn, user_base)

        delta = compute_membership_delta(actual, old, new, ignore_unmanaged)
        log.info(
            "Группа %s: добавить %s, удалить %s",
            obj.dn, sorted(delta.to_add), sorted(delta.to_remove),
        )
        if delta.is_empty:
            log.info("Участники группы %s не изменились", name)
            return delta

        changes = AttributeDelta()
        try:
            if delta.to_add:
                changes = changes.merge(AttributeDelta.add("member", self.groups.resolve_member_dns(delta.to_add, user_base)))
            if delta.to_remove:
                changes = changes.merge(
                    AttributeDelta.remove("member", self.groups.resolve_member_dns(delta.to_remove, user_base))
                )
        except DirectoryError as e:
            raise with_context(e, op, obj.dn) from e

        self.store.update(obj.dn, changes)
        return delta
