# -*- coding: utf-8 -*-
"""
cartpy.tree
===========

Binary decision trees grown by greedy impurity reduction.

The module holds the four operations a tree goes through:

* :func:`grow` searches every column and every observed value of that column
  for the split with the largest impurity reduction and builds one node per
  level until no split has a positive gain.
* :func:`prune` collapses sibling leaves bottom-up when keeping them apart
  gains less than a threshold.
* :func:`classify` routes an observation to a leaf, optionally blending both
  branches when the observation is missing the split feature.
* :func:`render` prints the tree as indented text.

Numeric split values act as inclusive thresholds (``row[col] >= value``);
any other value is matched by equality.  The same predicate drives both the
split search and classification.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from .exceptions import InvalidMetricError
from .metrics import _is_number, entropy, get_metric, unique_counts


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _is_missing(v) -> bool:
    return (v is None) or (isinstance(v, float) and math.isnan(v))


def _matches(cell, value) -> bool:
    if _is_number(value):
        # threshold split; missing or non-numeric cells fall on the false side
        return _is_number(cell) and cell >= value
    return cell == value


def _sort_key(v):
    # numbers ascending, then strings ascending
    if _is_number(v):
        return (0, v)
    return (1, str(v))


def _to_precision(x: float, digits: int = 3) -> str:
    return format(float(x), f"#.{digits}g")


def _summary(score: float, n_samples: int) -> dict:
    return {"impurity": _to_precision(score, 3), "samples": n_samples}


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
@dataclass(eq=False)
class TreeNode:
    """A single node of a decision tree.

    A node is either internal or a leaf, never both.

    Attributes
    ----------
    col : int
        Index of the column tested at an internal node; ``-1`` for leaves.
    value : int, float, str or None
        Threshold (numeric) or category (anything else) of the split.
    true_branch, false_branch : TreeNode or None
        Children taken when the split predicate holds / does not hold.
    results : dict or None
        ``label -> count`` distribution of the rows that reached a leaf;
        ``None`` for internal nodes.
    summary : dict
        ``{"impurity": str, "samples": int}`` with the node impurity rounded
        to three significant digits and the number of rows at the node.
    """

    col: int = -1
    value: Any = None
    true_branch: Optional[TreeNode] = None
    false_branch: Optional[TreeNode] = None
    results: Optional[dict] = None
    summary: dict = field(default_factory=dict)

    @property
    def is_leaf(self) -> bool:
        return self.results is not None

    @property
    def n_leaves(self) -> int:
        count = 0
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                count += 1
            else:
                stack.extend((node.true_branch, node.false_branch))
        return count

    @property
    def depth(self) -> int:
        best = 0
        stack = [(self, 0)]
        while stack:
            node, d = stack.pop()
            best = max(best, d)
            if not node.is_leaf:
                stack.append((node.true_branch, d + 1))
                stack.append((node.false_branch, d + 1))
        return best

    def _check(self) -> None:
        if self.is_leaf:
            if self.true_branch is not None or self.false_branch is not None:
                raise ValueError("Malformed tree: leaf node has children")
        elif self.true_branch is None or self.false_branch is None:
            raise ValueError("Malformed tree: internal node is missing a branch")


# -----------------------------------------------------------------------------
# Splitter
# -----------------------------------------------------------------------------
def divide_set(rows: Sequence[Sequence], column: int, value) -> tuple[list, list]:
    """Partition ``rows`` on ``row[column]``.

    Parameters
    ----------
    rows : sequence of rows
        Rows to split; their order is preserved in both outputs.
    column : int
        Index of the cell to test.
    value : number or any
        A number splits on ``row[column] >= value``; anything else splits on
        ``row[column] == value``.

    Returns
    -------
    (matched, unmatched) : tuple of lists
    """
    matched, unmatched = [], []
    for row in rows:
        (matched if _matches(row[column], value) else unmatched).append(row)
    return matched, unmatched


# -----------------------------------------------------------------------------
# Tree construction
# -----------------------------------------------------------------------------
def _best_split(rows, metric, current_score):
    best_gain = 0.0
    best_attribute = None
    best_sets = None
    n = len(rows)
    column_count = len(rows[0]) - 1  # last column is the target
    for col in range(column_count):
        column_values = {row[col] for row in rows if not _is_missing(row[col])}
        for value in sorted(column_values, key=_sort_key):
            set1, set2 = divide_set(rows, col, value)
            p = len(set1) / n
            gain = current_score - p * metric(set1) - (1 - p) * metric(set2)
            if gain > best_gain and set1 and set2:
                best_gain = gain
                best_attribute = (col, value)
                best_sets = (set1, set2)
    return best_gain, best_attribute, best_sets


def grow(rows: Sequence[Sequence], metric: Callable | str = entropy) -> TreeNode:
    """Grow a decision tree from ``rows``.

    The last cell of every row is the target.  At each node every column and
    every distinct value observed in it (ascending) is tried as a split; the
    split with the strictly largest gain wins, so ties keep the first
    candidate found.  A node becomes a leaf when no split has a positive gain.

    Parameters
    ----------
    rows : sequence of rows
        Training observations, all of the same length.
    metric : callable or str, default=entropy
        Impurity metric, see :mod:`cartpy.metrics`.

    Returns
    -------
    TreeNode
        Root of the tree.  An empty ``rows`` gives an empty leaf.

    Raises
    ------
    InvalidMetricError
        If ``metric`` returns a non-finite score for a non-empty row set.
    """
    metric = get_metric(metric)
    rows = list(rows)
    if not rows:
        return TreeNode(results={}, summary=_summary(0.0, 0))

    root = TreeNode()
    # explicit stack instead of recursion; children never come back empty
    stack = [(rows, root)]
    while stack:
        part, node = stack.pop()
        current_score = metric(part)
        if not _is_number(current_score) or math.isinf(current_score):
            raise InvalidMetricError(metric, current_score)

        node.summary = _summary(current_score, len(part))
        best_gain, best_attribute, best_sets = _best_split(part, metric, current_score)

        if best_gain > 0:
            node.col, node.value = best_attribute
            node.true_branch = TreeNode()
            node.false_branch = TreeNode()
            logger.debug(
                "Split {} rows on column {} at {!r} (gain={:.4f})",
                len(part), node.col, node.value, best_gain,
            )
            stack.append((best_sets[1], node.false_branch))
            stack.append((best_sets[0], node.true_branch))
        else:
            node.results = unique_counts(part)
    return root


# -----------------------------------------------------------------------------
# Pruning
# -----------------------------------------------------------------------------
def _expand(results: dict) -> list:
    rows = []
    for label, count in results.items():
        rows.extend([(label,)] * int(count))
    return rows


def _notify(notify, delta: float) -> None:
    if notify is True:
        logger.info("A branch was pruned: gain = {}", delta)
        return
    try:
        notify(delta)
    except Exception:
        logger.opt(exception=True).warning("Prune notification hook failed")


def prune(tree: TreeNode, min_gain: float, metric: Callable | str = entropy,
          notify: bool | Callable[[float], Any] = False) -> None:
    """Merge sibling leaves whose split gains less than ``min_gain``.

    Works bottom-up and in place.  Once both children of a node are leaves,
    their counts are expanded back into single-label rows and the gain of
    keeping them apart is recomputed with ``metric``; below ``min_gain`` the
    node becomes a leaf holding the combined counts.  Each internal node is
    evaluated once, after both of its subtrees, so a parent whose children
    were merged earlier in the same call is evaluated as well.

    Parameters
    ----------
    tree : TreeNode
        Tree to prune; it is modified in place.
    min_gain : float
        Minimum gain a split must keep to survive.
    metric : callable or str, default=entropy
        Should be the metric the tree was grown with.
    notify : bool or callable, default=False
        ``True`` logs every merge at INFO level; a callable is called with the
        gain of every merge.  Failures of the callable are logged and ignored.
    """
    metric = get_metric(metric)
    if tree.is_leaf:
        return

    # internal nodes in (node, false subtree, true subtree) order; walking it
    # backwards visits the true subtree, then the false subtree, then the node
    order = []
    stack = [tree]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            continue
        node._check()
        order.append(node)
        stack.append(node.true_branch)
        stack.append(node.false_branch)

    for node in reversed(order):
        if not (node.true_branch.is_leaf and node.false_branch.is_leaf):
            continue
        tb = _expand(node.true_branch.results)
        fb = _expand(node.false_branch.results)
        p = len(tb) / (len(tb) + len(fb))
        delta = metric(tb + fb) - p * metric(tb) - (1 - p) * metric(fb)

        if delta < min_gain:
            logger.debug("Merging leaves under column {} at {!r} (gain={})",
                         node.col, node.value, delta)
            node.true_branch = None
            node.false_branch = None
            node.results = unique_counts(tb + fb)
            if notify:
                _notify(notify, delta)


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
def _classify_exact(observation, node: TreeNode) -> dict:
    while not node.is_leaf:
        node._check()
        v = observation[node.col]
        node = node.true_branch if _matches(v, node.value) else node.false_branch
    return dict(node.results)


def _blend(tr: dict, fr: dict) -> dict:
    t_count = sum(tr.values())
    f_count = sum(fr.values())
    if t_count + f_count > 0:
        tw = t_count / (t_count + f_count)
        fw = f_count / (t_count + f_count)
    else:
        tw = fw = 0.5

    result: dict = {}
    for k, c in tr.items():
        result[k] = result.get(k, 0) + c * tw
    for k, c in fr.items():
        result[k] = result.get(k, 0) + c * fw
    return result


def _classify_missing(observation, root: TreeNode) -> dict:
    # post-order walk; done maps id(node) -> distribution of that subtree
    done: dict = {}
    stack = [root]
    while stack:
        node = stack[-1]
        if node.is_leaf:
            done[id(node)] = dict(node.results)
            stack.pop()
            continue
        node._check()
        v = observation[node.col]
        if not _is_missing(v):
            branch = node.true_branch if _matches(v, node.value) else node.false_branch
            if id(branch) in done:
                done[id(node)] = done.pop(id(branch))
                stack.pop()
            else:
                stack.append(branch)
            continue

        t, f = node.true_branch, node.false_branch
        if id(t) in done and id(f) in done:
            done[id(node)] = _blend(done.pop(id(t)), done.pop(id(f)))
            stack.pop()
        else:
            if id(f) not in done:
                stack.append(f)
            if id(t) not in done:
                stack.append(t)
    return done[id(root)]


def classify(observation: Sequence, tree: TreeNode, data_missing: bool = False) -> dict:
    """Return the label distribution ``tree`` predicts for ``observation``.

    Parameters
    ----------
    observation : sequence
        Feature values; a trailing target cell is allowed and ignored.
        ``None`` (or ``nan``) marks a missing value.
    tree : TreeNode
        A grown (and possibly pruned) tree.
    data_missing : bool, default=False
        When ``True`` a missing value at a split sends the observation down
        both branches and the two leaf distributions are blended by their
        total counts.  The result then holds fractional weights.  When
        ``False`` a missing value simply fails the split predicate.

    Returns
    -------
    dict
        A new ``label -> count`` (or weight) mapping; changing it leaves the
        tree untouched.
    """
    if data_missing:
        return _classify_missing(observation, tree)
    return _classify_exact(observation, tree)


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------
def _render_leaf(results: dict) -> str:
    items = sorted(results.items(), key=lambda kv: _sort_key(kv[0]))
    return ", ".join(f"({x}: {y})" for x, y in items)


def render(tree: TreeNode, column_names: Optional[dict] = None, indent: str = "") -> str:
    """Describe ``tree`` as indented text.

    Leaves print as ``(label: count)`` pairs sorted by label.  Internal nodes
    print their test (``Column 0 >= 3`` or ``Column 1 == red?``) followed by
    a ``yes -> `` and a ``no -> `` line, each level indented by two tabs.
    ``column_names`` maps column indices to display names.
    """
    column_names = column_names or {}
    lines = []
    # (node, text before the node's first line, indent of its branch lines)
    stack = [(tree, "", indent)]
    while stack:
        node, prefix, ind = stack.pop()
        if node.is_leaf:
            lines.append(prefix + _render_leaf(node.results))
            continue
        node._check()
        name = column_names.get(node.col, f"Column {node.col}")
        if _is_number(node.value):
            lines.append(f"{prefix}{name} >= {node.value}")
        else:
            lines.append(f"{prefix}{name} == {node.value}?")
        stack.append((node.false_branch, ind + "no -> ", ind + "\t\t"))
        stack.append((node.true_branch, ind + "yes -> ", ind + "\t\t"))
    return "\n".join(lines)
