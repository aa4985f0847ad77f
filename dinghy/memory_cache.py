"""In-memory dependency graph of dinghyfiles and the modules they use."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Node:
    """A dinghyfile or module, identified by its URL, with its graph edges."""

    url: str
    children: list[Node] = field(default_factory=list, repr=False)
    parents: list[Node] = field(default_factory=list, repr=False)

    def __str__(self) -> str:
        return self.url


def _contains(nodes: list[Node], wanted: Node) -> bool:
    return any(node.url == wanted.url for node in nodes)


def _require_text(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string, not {type(value).__name__}")
    return value


class MemoryCache(dict[str, Node]):
    """Maps URLs to graph nodes, tracking parent/child dependencies."""

    def _node(self, url: str) -> Node:
        node = self.get(url)
        if node is None:
            node = self[url] = Node(url)
        return node

    def set_raw_data(self, url: str, raw_data: str) -> None:
        """Check the arguments; raw data is not kept in memory."""
        _require_text("url", url)
        _require_text("raw_data", raw_data)
        logger.debug("raw data for %s is not kept in memory", url)

    def get_raw_data(self, url: str) -> str:
        """Check the URL; raw data is not kept in memory, so this is always empty."""
        _require_text("url", url)
        return ""

    def set_deps(self, parent: str, deps: list[str]) -> None:
        """Replace the children of ``parent`` with ``deps``."""
        node = self._node(parent)
        removed = {child.url: child for child in node.children}
        found: dict[str, Node] = {}

        for dep in deps:
            if dep in removed:
                found[dep] = removed.pop(dep)
            else:
                found[dep] = self._node(dep)

        for gone in removed.values():
            gone.parents = [p for p in gone.parents if p.url != node.url]
            node.children = [c for c in node.children if c.url != gone.url]

        for child in found.values():
            if not _contains(node.children, child):
                node.children.append(child)
            if not _contains(child.parents, node):
                child.parents.append(node)

    def upstream_urls(self, url: str) -> tuple[list[str], list[str]]:
        """Return all upstream URLs of ``url`` and the root URLs among them."""
        start = self.get(url)
        if start is None:
            return [], []

        upstreams: list[str] = []
        roots: list[str] = []
        visited = {start}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            if current is not start:
                upstreams.append(current.url)
                if not current.parents:
                    roots.append(current.url)
            for parent in current.parents:
                if parent not in visited:
                    visited.add(parent)
                    queue.append(parent)

        return upstreams, roots

    def get_roots(self, url: str) -> list[str]:
        """Return the root URLs (dinghyfiles) that depend on ``url``."""
        return self.upstream_urls(url)[1]

    def dump(self) -> None:
        """Log the whole graph at debug level."""
        for url, node in self.items():
            logger.debug("-----------")
            logger.debug(url)
            logger.debug("Parents:")
            for parent in node.parents:
                logger.debug("  %s", parent.url)
            logger.debug("Children:")
            for child in node.children:
                logger.debug("  %s", child.url)
            logger.debug("-----------")