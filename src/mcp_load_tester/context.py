# context.py
# Accumulated workflow state threaded between sequence steps.

import copy
from typing import Any, Iterator

from mcp_load_tester import paths
from mcp_load_tester.models import PathOptions


class ContextStore:
    """
    Mutable key -> JSON map shared by the steps of a sequence.

    The engine never keeps one of these on itself; callers create a store
    (or let execute_sequence create one) and pass it through explicitly.
    Later writes to a key overwrite earlier ones.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ContextStore({self._data!r})"

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the current state."""
        return copy.deepcopy(self._data)

    # ------------------------------------------------------------------
    # Path access
    # ------------------------------------------------------------------

    def map_into(self, target: dict, mapping: dict, options: PathOptions | None = None) -> dict:
        """Read `mapping` from the context and point-write into `target`."""
        return paths.apply_mapping(mapping, self._data, target, options)

    def map_from(self, source: Any, mapping: dict, options: PathOptions | None = None) -> None:
        """Read `mapping` from `source` and point-write into the context."""
        paths.apply_mapping(mapping, source, self._data, options)

    def transform(self, mapping: dict, options: PathOptions | None = None) -> None:
        """
        Rewrite the context using itself as the source.

        Paths are evaluated against a snapshot taken before any write, so
        the order of keys in `mapping` does not matter. Keys the mapping
        does not mention are kept.
        """
        self.map_from(self.snapshot(), mapping, options)
