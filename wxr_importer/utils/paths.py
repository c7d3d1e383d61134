from __future__ import annotations

from typing import Callable, Dict, Generic, Hashable, List, Optional, Set, TypeVar

K = TypeVar("K", bound=Hashable)


class HierarchicalPathResolver(Generic[K]):
    """
    Resolve ``[...ancestor segments, own segment]`` paths over a parent graph.

    The graph may contain cycles.  A node that is reached again while it is
    still being resolved stops the walk and contributes only its own
    segment.  Resolved paths are memoized per node.
    """

    def __init__(
        self,
        segment_of: Callable[[K], str],
        parent_of: Callable[[K], Optional[K]],
    ) -> None:
        self._segment_of = segment_of
        self._parent_of = parent_of
        self._cache: Dict[K, List[str]] = {}

    def resolve(self, node: K) -> List[str]:
        return list(self._resolve(node, set()))

    def _resolve(self, node: K, visiting: Set[K]) -> List[str]:
        cached = self._cache.get(node)
        if cached is not None:
            return cached

        own = self._segment_of(node)
        if node in visiting:
            return [own]

        visiting.add(node)
        parent_path: List[str] = []
        parent = self._parent_of(node)
        if parent is not None:
            parent_path = self._resolve(parent, visiting)
        visiting.discard(node)

        resolved = [*parent_path, own]
        self._cache[node] = resolved
        return resolved
