"""Dependency graph between form fields.

An edge ``source -> dependent`` means "when source changes, dependent must
be revalidated" (e.g. password -> confirm_password). The graph is kept
acyclic: an edge that would close a cycle is rejected before anything is
stored.
"""

from collections import deque
from typing import Dict, List, Tuple

from formstate.errors import RegistrationError


class DependencyGraph:
    """Adjacency map of field keys to their dependents, in insertion order.

    Examples:
        >>> graph = DependencyGraph()
        >>> graph.add("password", "confirm_password")
        >>> graph.add("confirm_password", "summary")
        >>> graph.dependents_of("password")
        ['confirm_password', 'summary']
    """

    def __init__(self):
        # dict values keep insertion order and give O(1) membership
        self._edges: Dict[str, Dict[str, None]] = {}

    def add(self, source: str, dependent: str) -> None:
        """Declare that ``dependent`` must revalidate when ``source`` changes.

        Re-adding an existing edge is a no-op.

        Raises:
            RegistrationError: If the edge is a self-loop or would create a cycle
        """
        if source == dependent:
            raise RegistrationError(
                f"Field '{source}' cannot depend on itself",
                field=source,
                reason="dependency_cycle",
            )
        if dependent in self._edges.get(source, {}):
            return
        if self.reaches(dependent, source):
            raise RegistrationError(
                f"Dependency '{source}' -> '{dependent}' would create a cycle",
                field=dependent,
                reason="dependency_cycle",
            )
        self._edges.setdefault(source, {})[dependent] = None

    def reaches(self, start: str, target: str) -> bool:
        """Return True if ``target`` is reachable from ``start`` along edges."""
        seen = {start}
        queue = deque([start])
        while queue:
            node = queue.popleft()
            for nxt in self._edges.get(node, {}):
                if nxt == target:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return False

    def direct_dependents(self, key: str) -> List[str]:
        return list(self._edges.get(key, {}))

    def dependents_of(self, key: str) -> List[str]:
        """Transitive dependents of ``key`` in breadth-first order.

        Each dependent appears once; siblings keep registration order and
        ``key`` itself is never included.
        """
        ordered: List[str] = []
        seen = {key}
        queue = deque([key])
        while queue:
            node = queue.popleft()
            for nxt in self._edges.get(node, {}):
                if nxt not in seen:
                    seen.add(nxt)
                    ordered.append(nxt)
                    queue.append(nxt)
        return ordered

    def edges(self) -> List[Tuple[str, str]]:
        return [(src, dst) for src, dsts in self._edges.items() for dst in dsts]

    def __len__(self) -> int:
        return sum(len(dsts) for dsts in self._edges.values())


__all__ = ["DependencyGraph"]
