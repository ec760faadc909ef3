"""Loading tabular observations into the row format used by :mod:`cartpy.tree`."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from .metrics import _is_number


def format_value(v: Any):
    """Coerce one cell: numbers stay numbers, text becomes int, float or a trimmed string.

    Only finite numbers written without digit separators count as numeric, so
    text such as ``"NaN"``, ``"inf"`` or ``"1_000"`` stays a string.
    """
    if v is None or _is_number(v):
        return v
    text = str(v)
    if "_" not in text:
        for cast in (int, float):
            try:
                number = cast(text)
            except ValueError:
                continue
            if cast is int or math.isfinite(number):
                return number
            break
    return text.strip()


@dataclass(frozen=True)
class Dataset:
    """Immutable table of rows; the last cell of each row is the target.

    Attributes
    ----------
    rows : tuple of tuples
        The observations.
    headers : dict
        Optional ``column index -> name`` mapping, used for rendering.
    """

    rows: tuple = ()
    headers: dict = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "rows", tuple(tuple(r) for r in self.rows))
        widths = {len(r) for r in self.rows}
        if len(widths) > 1:
            raise ValueError(f"All rows must have the same length, got {sorted(widths)}")

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    @property
    def n_columns(self) -> int:
        """Number of feature columns (row width minus the target)."""
        return len(self.rows[0]) - 1 if self.rows else 0


def read_csv(filepath_or_buffer, *, has_headers: bool = True, **kwargs) -> Dataset:
    """Read a CSV file into a :class:`Dataset`.

    Every cell is read as text and coerced with :func:`format_value`.  When
    ``has_headers`` is true the first line supplies the column names.  Extra
    keyword arguments are passed to :func:`pandas.read_csv`.
    """
    df = pd.read_csv(
        filepath_or_buffer,
        header=0 if has_headers else None,
        dtype=str,
        keep_default_na=False,
        **kwargs,
    )
    headers = {i: str(name) for i, name in enumerate(df.columns)} if has_headers else {}
    rows = [tuple(format_value(v) for v in rec) for rec in df.itertuples(index=False, name=None)]
    return Dataset(rows=rows, headers=headers)
