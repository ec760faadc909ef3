"""Regression trees: the variance metric behind a scikit-learn style API.

Leaves keep the ``target -> count`` distribution produced by
:func:`cartpy.tree.grow`; a prediction is the count-weighted mean of the
distribution reached by the sample (blended across branches when the split
feature is missing).
"""
from __future__ import annotations

import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin

from .classifier import _as_rows, _check_fitted, _resolve_names, _to_cell
from .metrics import variance
from .tree import TreeNode, classify, grow, prune, render


def _weighted_mean(dist: dict) -> float:
    sw = float(sum(dist.values()))
    if sw <= 0.0:
        return float("nan")
    return float(sum(float(k) * w for k, w in dist.items()) / sw)


class DecisionTreeRegressor(RegressorMixin, BaseEstimator):
    r"""
    Binary regression tree grown by variance reduction.

    Parameters
    ----------
    min_gain : float or None, default=None
        If given, sibling leaves whose split reduces variance by less than this
        value are merged after growing.
    feature_names : list[str] or None, default=None
        Names used by :meth:`export_text`.
    """

    def __init__(self, *, min_gain: float | None = None,
                 feature_names: list[str] | None = None):
        self.min_gain = min_gain
        self.feature_names = feature_names

    def fit(self, X, y):
        rows = _as_rows(X)
        y = np.asarray(y, dtype=float)
        if len(rows) != len(y):
            raise ValueError("X and y must have the same number of samples")
        rows = [x + [_to_cell(t)] for x, t in zip(rows, y)]
        self.n_features_in_ = np.asarray(X, dtype=object).shape[1]
        self.tree_: TreeNode = grow(rows, variance)
        if self.min_gain is not None:
            prune(self.tree_, self.min_gain, variance)
        return self

    def predict(self, X):
        _check_fitted(self)
        return np.array([_weighted_mean(classify(x, self.tree_, data_missing=True))
                         for x in _as_rows(X)])

    def export_text(self, feature_names=None) -> str:
        _check_fitted(self)
        names = feature_names if feature_names is not None else self.feature_names
        return render(self.tree_, _resolve_names(names, self.n_features_in_))
