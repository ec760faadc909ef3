# cartpy/__init__.py
"""
cartpy: binary decision trees (entropy, Gini, variance) in pure Python.

Exports:
    - grow, prune, classify, render, divide_set, TreeNode
    - entropy, gini, variance
    - read_csv, Dataset
    - DecisionTreeClassifier, DecisionTreeRegressor
    - enable_logging
"""
from loguru import logger

from .classifier import DecisionTreeClassifier
from .data import Dataset, read_csv
from .exceptions import InvalidMetricError, InvalidTargetTypeError
from .logging import PACKAGE_NAME, enable_logging
from .metrics import entropy, gini, variance
from .regressor import DecisionTreeRegressor
from .tree import TreeNode, classify, divide_set, grow, prune, render

logger.disable(PACKAGE_NAME)

__all__ = [
    "Dataset",
    "DecisionTreeClassifier",
    "DecisionTreeRegressor",
    "InvalidMetricError",
    "InvalidTargetTypeError",
    "TreeNode",
    "classify",
    "divide_set",
    "enable_logging",
    "entropy",
    "gini",
    "grow",
    "prune",
    "read_csv",
    "render",
    "variance",
]
__version__ = "0.1.0"
