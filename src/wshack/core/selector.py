"""Turn user package names into a :class:`PackageSet`."""

from __future__ import annotations

from collections.abc import Sequence

from wshack.core.models import PackageSet, WorkspaceGraph
from wshack.exceptions import UnknownPackage


def select(names: Sequence[str], graph: WorkspaceGraph) -> PackageSet:
    """Resolve *names* against the workspace members of *graph*.

    An empty *names* selects every workspace member.  Unknown names are
    all reported at once, in the order they were given.
    """
    if not names:
        return PackageSet(ids=graph.member_ids(), explicit=False)

    ids: set[str] = set()
    missing: list[str] = []
    for name in names:
        package = graph.member_by_name(name)
        if package is None:
            if name not in missing:
                missing.append(name)
            continue
        ids.add(package.id)

    if missing:
        raise UnknownPackage(missing)
    return PackageSet(ids=frozenset(ids), explicit=True)
