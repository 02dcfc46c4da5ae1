"""
Structural patch capture for enhancer stages.

A stage works on a deep copy of a row; what it changed is recorded as an
RFC 6902 patch (via ``jsonpatch``) instead of a replacement value. Patches
from independent chains then compose on the same base row without erasing
each other.
"""

import copy
import inspect
from typing import Any, Callable, Dict, List, Tuple

import jsonpatch

Row = Dict[str, Any]
Operations = List[Dict[str, Any]]


async def produce(row: Row, enhancer: Callable[..., Any], *args) -> Tuple[Row, Operations]:
    """
    Run ``enhancer`` on a draft of ``row``.

    The enhancer may mutate the draft in place, return a replacement, or be
    async. ``row`` itself is never touched.

    Returns:
        (new row, patch operations turning ``row`` into it)
    """
    draft = copy.deepcopy(row)
    result = enhancer(draft, *args)
    if inspect.isawaitable(result):
        result = await result
    if result is None:
        result = draft

    return result, jsonpatch.make_patch(row, result).patch


class PatchStore:
    """Patch operations accumulated per row identity, in completion order."""

    def __init__(self):
        self._patches: Dict[str, Operations] = {}

    def record(self, row_id: str, operations: Operations) -> None:
        if not operations:
            return
        self._patches.setdefault(row_id, []).extend(operations)

    def get(self, row_id: str) -> Operations:
        return list(self._patches.get(row_id, ()))

    def apply(self, row_id: str, base: Row) -> Row:
        """Base row with every patch recorded for its identity. Raises jsonpatch errors on conflict."""
        operations = self._patches.get(row_id)
        if not operations:
            return copy.deepcopy(base)
        return jsonpatch.apply_patch(base, operations)

    def clear(self) -> None:
        self._patches.clear()

    def __contains__(self, row_id: str) -> bool:
        return row_id in self._patches

    def __len__(self) -> int:
        return len(self._patches)
