"""Version comparison helpers.

A tolerant Maven-ish comparator: numeric chunks compare numerically,
well-known qualifiers (alpha, beta, milestone, CR/RC, SNAPSHOT) sort before
the plain release, and release markers (Final, GA, RELEASE) are ignored.
Used by resolution sessions to pick the latest candidate version.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from itertools import zip_longest
from typing import Iterable, List, Optional, Union

Part = Union[int, str]

_RELEASE_MARKERS = {"final", "ga", "release"}

_QUALIFIER_RANK = {
    "alpha": 0,
    "a": 0,
    "beta": 1,
    "b": 1,
    "milestone": 2,
    "m": 2,
    "rc": 3,
    "cr": 3,
    "snapshot": 4,
    "": 5,
    "sp": 6,
}


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` is older, equal or newer than ``right``."""
    return _compare_parts(_version_parts(left), _version_parts(right))


def is_version_newer(current: str, candidate: str) -> bool:
    """Return True if ``candidate`` is newer than ``current``."""
    return compare_versions(current, candidate) < 0


def latest_version(versions: Iterable[str]) -> Optional[str]:
    """Highest version of ``versions``, or None when empty.

    Among versions that compare equal ("1.0.0" and "1.0.0.Final") the one
    listed first wins.
    """
    result: Optional[str] = None
    for version in versions:
        if result is None or compare_versions(version, result) > 0:
            result = version
    return result


def sort_versions(versions: Iterable[str]) -> List[str]:
    return sorted(versions, key=cmp_to_key(compare_versions))


def _version_parts(version: str) -> List[Part]:
    version = (version or "").strip().lower()
    if version[:1] == "v":
        version = version[1:]
    parts: List[Part] = []
    for chunk in re.split(r"[.\-+_]", version):
        for token in re.findall(r"\d+|[a-z]+", chunk):
            parts.append(int(token) if token.isdigit() else token)
    while parts and parts[-1] in _RELEASE_MARKERS:
        parts.pop()
    return parts


def _compare_parts(left: List[Part], right: List[Part]) -> int:
    for cur, cand in zip_longest(left, right, fillvalue=None):
        if cur is None:
            cur = 0 if isinstance(cand, int) else ""
        if cand is None:
            cand = 0 if isinstance(cur, int) else ""
        if cur == cand:
            continue
        if isinstance(cur, int) and isinstance(cand, int):
            return -1 if cur < cand else 1
        if isinstance(cur, int):
            return 1
        if isinstance(cand, int):
            return -1
        cur_rank = _QUALIFIER_RANK.get(cur, 5)
        cand_rank = _QUALIFIER_RANK.get(cand, 5)
        if cur_rank != cand_rank:
            return -1 if cur_rank < cand_rank else 1
        return -1 if cur < cand else 1
    return 0
