"""Merge instant local defects with remote inspection results."""

from collections.abc import Iterable

from flowstate.schema.defect import Defect, RawDefect

__all__ = ("DEDUP_PREFIX_LEN", "dedup_key", "merge_defects")

DEDUP_PREFIX_LEN = 30


def dedup_key(defect: Defect) -> str:
    return defect.issue.lower()[:DEDUP_PREFIX_LEN]


def merge_defects(local: Iterable[Defect | RawDefect], remote: Iterable[Defect | RawDefect]) -> list[Defect]:
    """
    Local defects first, then remote defects whose issue prefix is not
    already covered by a local one.

    Only local keys are checked: two remote entries with the same prefix
    are both kept.
    """
    merged = [Defect.from_raw(d, i) for i, d in enumerate(local)]
    seen = {dedup_key(d) for d in merged}

    for index, raw in enumerate(remote):
        defect = Defect.from_raw(raw, index)
        if dedup_key(defect) not in seen:
            merged.append(defect)
    return merged
