# optaint/rewriter.py
"""
Tree rewriting driver.

Applies every rule of a :class:`~optaint.rules.RuleCatalog` to a syntax
tree in one post-order pass: children are rewritten before their parent,
so ``!(a + b)`` becomes ``__logical_not__(__plus__(a, b))``.  Nodes no
rule matches are returned as-is (shared, not copied).

The walk is iterative so that long operator chains (minified
``a + b + c + ...``) do not hit the interpreter's recursion limit.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from optaint.nodes import Node, from_estree, to_estree
from optaint.rules import RuleCatalog

logger = logging.getLogger(__name__)

__all__ = ["RewriteStats", "rewrite", "rewrite_estree"]


@dataclass
class RewriteStats:
    """Replacement counts per replacement name for one or more rewrites."""

    replaced: Counter = field(default_factory=Counter)
    visited: int = 0

    @property
    def total(self) -> int:
        return sum(self.replaced.values())

    def as_dict(self) -> Dict[str, Any]:
        return {"visited": self.visited, "replaced": dict(sorted(self.replaced.items()))}


def rewrite(
    tree: Node,
    catalog: Optional[RuleCatalog] = None,
    stats: Optional[RewriteStats] = None,
) -> Node:
    """Return a new tree with every operator occurrence replaced by its mock call."""
    if catalog is None:
        catalog = RuleCatalog()
    results: Dict[int, Node] = {}
    stack = [(tree, False)]
    while stack:
        node, expanded = stack.pop()
        if id(node) in results:
            continue
        if not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in node.children())
            continue
        rebuilt = node.map_children(lambda child: results[id(child)])
        rule = catalog.match(rebuilt)
        if rule is not None:
            rebuilt = rule.transform(rebuilt)
            if stats is not None:
                stats.replaced[rule.replacement_name] += 1
        if stats is not None:
            stats.visited += 1
        results[id(node)] = rebuilt
    if stats is not None:
        logger.debug("rewrite visited %d nodes, replaced %d", stats.visited, stats.total)
    return results[id(tree)]


def rewrite_estree(
    program: Mapping[str, Any],
    catalog: Optional[RuleCatalog] = None,
    stats: Optional[RewriteStats] = None,
) -> Dict[str, Any]:
    """Rewrite an ESTree dictionary and return the rewritten dictionary."""
    return to_estree(rewrite(from_estree(program), catalog, stats))
