# -*- coding: utf-8 -*-
"""
cartpy.metrics
==============

Impurity metrics used to score how mixed the target column of a row set is.

Every metric is a plain function ``metric(rows) -> float`` that only looks at
the last cell of each row, so it accepts full observation rows as well as the
single-cell pseudo-rows the pruner rebuilds from leaf counts.  A score of 0
means the row set is pure.
"""
from __future__ import annotations

import math
import numbers
from typing import Callable, Sequence

from .exceptions import InvalidTargetTypeError


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _is_number(v) -> bool:
    """True for real numbers that are not booleans and not NaN."""
    if isinstance(v, bool) or not isinstance(v, numbers.Real):
        return False
    return not math.isnan(v)


def unique_counts(rows: Sequence[Sequence]) -> dict:
    """Count the target labels (last cell) of ``rows``.

    Labels keep the order in which they are first seen.
    """
    results: dict = {}
    for row in rows:
        r = row[-1]
        results[r] = results.get(r, 0) + 1
    return results


# -----------------------------------------------------------------------------
# Metrics
# -----------------------------------------------------------------------------
def entropy(rows: Sequence[Sequence]) -> float:
    """Shannon entropy (base 2) of the label distribution of ``rows``."""
    total = len(rows)
    entr = 0.0
    for count in unique_counts(rows).values():
        p = count / total
        entr -= p * math.log2(p)
    return entr


def gini(rows: Sequence[Sequence]) -> float:
    """Gini impurity of the label distribution of ``rows``.

    Computed as the sum of ``p1 * p2`` over ordered pairs of distinct classes,
    i.e. every unordered pair contributes twice.  This is algebraically
    ``1 - sum(p**2)`` but keeps the floating point values of the pairwise form.
    """
    total = len(rows)
    counts = unique_counts(rows)
    imp = 0.0
    for k1, c1 in counts.items():
        p1 = c1 / total
        for k2, c2 in counts.items():
            if k1 == k2:
                continue
            imp += p1 * (c2 / total)
    return imp


def variance(rows: Sequence[Sequence]) -> float:
    """Population variance of a numeric target column.

    Raises
    ------
    InvalidTargetTypeError
        If any target value is not a number.
    """
    if not rows:
        return 0.0
    data = [row[-1] for row in rows]
    for d in data:
        if not _is_number(d):
            raise InvalidTargetTypeError(d)
    mean = math.fsum(data) / len(data)
    return math.fsum((d - mean) ** 2 for d in data) / len(data)


METRICS: dict[str, Callable[[Sequence[Sequence]], float]] = {
    "entropy": entropy,
    "gini": gini,
    "variance": variance,
}


def get_metric(metric) -> Callable[[Sequence[Sequence]], float]:
    """Resolve ``metric`` to a scoring function.

    Parameters
    ----------
    metric : str or callable
        One of ``"entropy"``, ``"gini"``, ``"variance"`` (case-insensitive) or
        any callable with the ``metric(rows) -> float`` signature.

    Returns
    -------
    callable
        The scoring function.
    """
    if callable(metric):
        return metric
    try:
        return METRICS[str(metric).lower()]
    except KeyError:
        raise ValueError(
            f"Unknown metric {metric!r}; expected one of {sorted(METRICS)}"
        ) from None
