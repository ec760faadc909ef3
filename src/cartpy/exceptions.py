"""Exceptions raised by cartpy."""
from __future__ import annotations


class InvalidMetricError(ValueError):
    """An impurity metric returned a score that is not a finite number.

    This signals a mismatch between the metric and the data it was given,
    e.g. a custom metric returning ``nan`` for a non-empty row set.
    """

    def __init__(self, metric, score):
        self.metric = metric
        self.score = score
        name = getattr(metric, "__name__", repr(metric))
        super().__init__(
            f"Something went wrong. Check the evaluation function: {name} "
            f"(returned {score!r})"
        )


class InvalidTargetTypeError(TypeError):
    """The variance metric was asked to score a non-numeric target column."""

    def __init__(self, value=None):
        self.value = value
        super().__init__(
            "Cannot use variance function when the target column is a string "
            f"(found {value!r})."
        )
