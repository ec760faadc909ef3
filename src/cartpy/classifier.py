# -*- coding: utf-8 -*-
"""
cartpy.classifier
=================

A scikit‑learn style wrapper around :func:`cartpy.tree.grow`,
:func:`cartpy.tree.prune` and :func:`cartpy.tree.classify`.

The estimator grows one binary tree with the entropy or Gini criterion,
optionally prunes it, and predicts by routing each sample to a leaf.  Missing
values (``None`` or ``numpy.nan``) are always handled with the blended,
missing-data routing, so ``predict_proba`` is defined for incomplete rows.
"""
from __future__ import annotations

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .tree import TreeNode, classify, grow, prune, render


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _to_cell(v):
    if v is None:
        return None
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, float) and np.isnan(v):
        return None
    return v


def _as_rows(X) -> list[list]:
    X = np.asarray(X, dtype=object)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2D array, got an array of shape {X.shape}")
    return [[_to_cell(v) for v in x] for x in X]


def _check_fitted(est) -> None:
    if getattr(est, "tree_", None) is None:
        raise ValueError("Estimator not fitted. Call fit(...) first.")


def _resolve_names(feature_names, n_features):
    if feature_names is None:
        return {}
    if len(feature_names) != n_features:
        raise ValueError("feature_names length must match X.shape[1]")
    return dict(enumerate(feature_names))


# -----------------------------------------------------------------------------
# Classifier
# -----------------------------------------------------------------------------
class DecisionTreeClassifier(ClassifierMixin, BaseEstimator):
    """
    Binary decision tree classifier grown by greedy impurity reduction.

    Parameters
    ----------
    criterion : {"entropy", "gini"}, default="entropy"
        Impurity metric used to grow and prune the tree.
    min_gain : float or None, default=None
        If given, :func:`cartpy.tree.prune` merges sibling leaves whose split
        gains less than this value after the tree is grown.
    feature_names : list[str] or None, default=None
        Names used by :meth:`export_text`.

    Attributes
    ----------
    tree_ : TreeNode
        Root of the fitted tree.
    classes_ : ndarray
        Sorted class labels seen during ``fit``.
    n_features_in_ : int
        Number of feature columns seen during ``fit``.
    """

    def __init__(self, *, criterion: str = "entropy", min_gain: float | None = None,
                 feature_names: list[str] | None = None):
        self.criterion = criterion
        self.min_gain = min_gain
        self.feature_names = feature_names

    def fit(self, X, y):
        if self.criterion not in ("entropy", "gini"):
            raise ValueError(f"criterion must be 'entropy' or 'gini', got {self.criterion!r}")
        rows = _as_rows(X)
        y = np.asarray(y)
        if len(rows) != len(y):
            raise ValueError("X and y must have the same number of samples")
        labels = [_to_cell(v) for v in y]
        rows = [x + [label] for x, label in zip(rows, labels)]

        self.classes_ = np.unique(y)
        self.n_features_in_ = np.asarray(X, dtype=object).shape[1]
        self.tree_: TreeNode = grow(rows, self.criterion)
        if self.min_gain is not None:
            prune(self.tree_, self.min_gain, self.criterion)
        return self

    def predict_proba(self, X):
        """
        Predict class probabilities for ``X``.

        Missing values may be represented by ``None`` or ``numpy.nan``; such
        samples receive the count-weighted blend of both branches.

        Returns
        -------
        ndarray of shape (n_samples, n_classes)
            Columns follow :attr:`classes_`.
        """
        _check_fitted(self)
        proba = []
        for x in _as_rows(X):
            dist = classify(x, self.tree_, data_missing=True)
            tot = float(sum(dist.values()))
            if tot <= 0:
                proba.append(np.full(len(self.classes_), 1.0 / len(self.classes_)))
                continue
            proba.append([dist.get(_to_cell(c), 0) / tot for c in self.classes_])
        return np.asarray(proba, dtype=float)

    def predict(self, X):
        """Predict the most likely class of each sample in ``X``."""
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]

    def export_text(self, feature_names=None) -> str:
        """Return :func:`cartpy.tree.render` of the fitted tree."""
        _check_fitted(self)
        names = feature_names if feature_names is not None else self.feature_names
        return render(self.tree_, _resolve_names(names, self.n_features_in_))
