"""Read-only dataset view consumed by the histogram builders.

A `Dataset` holds, for every instance, one bin index per attribute (or
`MISSING_BIN`), a target value and a non-negative weight. Arrays are flagged
read-only on construction so that scoring workers can share them safely.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final, Literal

import numpy as np
import polars as pl
from loguru import logger
from sklearn.preprocessing import OrdinalEncoder

from fastinteract.exceptions import (
    DatasetValidationError,
    ResidualCountError,
    UnbinnedAttributeError,
)
from fastinteract.models import BinnedAttribute, NominalAttribute, attribute_size

MISSING_BIN: Final[int] = -1

type AttributeSpec = BinnedAttribute | NominalAttribute


@dataclass(frozen=True, eq=False)
class Dataset:
    """Binned instances with targets and weights.

    Attributes:
        attributes (tuple[AttributeSpec, ...]): Attribute metadata; the
            attribute at position `i` must have `index == i`.
        bins (np.ndarray): int64 matrix of shape `(n_instances, n_attributes)`
            holding bin indices, with `MISSING_BIN` marking missing values.
        target (np.ndarray): float64 vector of length `n_instances`.
        weights (np.ndarray): float64 vector of non-negative instance weights.
    """

    attributes: tuple[AttributeSpec, ...]
    bins: np.ndarray
    target: np.ndarray
    weights: np.ndarray

    def __post_init__(self) -> None:
        """Coerce arrays to their canonical dtypes, validate, and freeze them.

        Raises:
            AttributeTypeError: If an attribute is neither binned nor nominal.
            DatasetValidationError: If shapes disagree, a bin is out of range,
                an attribute index does not match its position, or a target or
                weight value is invalid.
        """
        bins = np.array(self.bins, dtype=np.int64, copy=True)
        if bins.ndim == 1:
            bins = bins.reshape(-1, 1)
        target = np.array(self.target, dtype=np.float64, copy=True).reshape(-1)
        weights = np.array(self.weights, dtype=np.float64, copy=True).reshape(-1)
        attributes = tuple(self.attributes)

        _validate_arrays(attributes, bins, target, weights)

        for array in (bins, target, weights):
            array.setflags(write=False)
        object.__setattr__(self, "attributes", attributes)
        object.__setattr__(self, "bins", bins)
        object.__setattr__(self, "target", target)
        object.__setattr__(self, "weights", weights)

    def __len__(self) -> int:
        """Return the number of instances."""
        return self.bins.shape[0]

    @property
    def n_attributes(self) -> int:
        """Number of attributes."""
        return len(self.attributes)

    @property
    def attribute_names(self) -> list[str]:
        """Attribute names in index order."""
        return [attribute.name for attribute in self.attributes]

    def attribute_sizes(self) -> list[int]:
        """Return the bin count (or cardinality) of every attribute, in index order."""
        return [attribute_size(attribute) for attribute in self.attributes]

    def is_missing(self, attribute_index: int) -> np.ndarray:
        """Return a boolean mask of instances missing a value on one attribute.

        Args:
            attribute_index (int): Index of the attribute to inspect.

        Returns:
            np.ndarray: Boolean vector of length `n_instances`.
        """
        return self.bins[:, attribute_index] == MISSING_BIN

    def with_target(self, residuals: Sequence[float] | np.ndarray) -> Dataset:
        """Return a copy of this dataset with the target replaced by `residuals`.

        Args:
            residuals (Sequence[float] | np.ndarray): One value per instance,
                in instance order.

        Returns:
            Dataset: A new dataset sharing attributes, bins and weights.

        Raises:
            ResidualCountError: If the residual count differs from the
                instance count.
            DatasetValidationError: If any residual is not finite.
        """
        residual_array = np.asarray(residuals, dtype=np.float64).reshape(-1)
        if residual_array.shape[0] != len(self):
            raise ResidualCountError(expected=len(self), actual=residual_array.shape[0])
        return Dataset(attributes=self.attributes, bins=self.bins, target=residual_array, weights=self.weights)

    @classmethod
    def from_polars(
        cls,
        df: pl.DataFrame,
        *,
        target: str | None = None,
        weight: str | None = None,
        exclude: Sequence[str] | None = None,
        bin_counts: Mapping[str, int] | None = None,
    ) -> Dataset:
        """Build a dataset from a DataFrame of already-binned columns.

        Every column other than `target`, `weight` and the `exclude` columns
        becomes an attribute:

        - integer columns (and floats holding only integral values) become
          `BinnedAttribute`s; the bin count is taken from `bin_counts` when
          given, otherwise `max + 1`,
        - boolean, string, Categorical and Enum columns become
          `NominalAttribute`s through ordinal encoding,
        - nulls (and NaN) become `MISSING_BIN`; a column with no value at all
          becomes a single-bin `BinnedAttribute` missing on every instance.

        Args:
            df (pl.DataFrame): The source DataFrame.
            target (str | None): Optional target column. When `None` the
                target is all zeros until `with_target` is called.
            weight (str | None): Optional instance-weight column. Defaults to
                weight 1 for every instance.
            exclude (Sequence[str] | None): Columns to leave out of the
                attributes, such as labels or identifiers.
            bin_counts (Mapping[str, int] | None): Bin counts reported by the
                upstream discretizer, keyed by column name.

        Returns:
            Dataset: The dataset view.

        Raises:
            DatasetValidationError: If `target`, `weight` or an `exclude`
                entry is not a column, or `target` or `weight` contains nulls.
            UnbinnedAttributeError: If a column cannot be read as bin indices.
        """
        reserved = [name for name in (target, weight) if name is not None]
        reserved.extend(exclude or ())
        missing_columns = [name for name in reserved if name not in df.columns]
        if missing_columns:
            raise DatasetValidationError(f"Columns not found in DataFrame: {sorted(missing_columns)}")

        bin_counts = dict(bin_counts or {})
        attributes: list[AttributeSpec] = []
        columns: list[np.ndarray] = []
        for col_name in (name for name in df.columns if name not in reserved):
            attribute, codes = _encode_attribute(df[col_name], len(attributes), bin_counts.get(col_name))
            attributes.append(attribute)
            columns.append(codes)

        bins = np.column_stack(columns) if columns else np.empty((len(df), 0), dtype=np.int64)
        target_array = _numeric_column(df, target) if target is not None else np.zeros(len(df))
        weight_array = _numeric_column(df, weight) if weight is not None else np.ones(len(df))

        logger.debug(
            "Dataset built from DataFrame",
            n_instances=len(df),
            n_attributes=len(attributes),
            nominal=sum(isinstance(attribute, NominalAttribute) for attribute in attributes),
        )
        return cls(attributes=tuple(attributes), bins=bins, target=target_array, weights=weight_array)


# ---------------------------------------------------------------------------
# Private helpers -- Validation
# ---------------------------------------------------------------------------


def _validate_arrays(
    attributes: tuple[AttributeSpec, ...],
    bins: np.ndarray,
    target: np.ndarray,
    weights: np.ndarray,
) -> None:
    """Check that dataset arrays are mutually consistent.

    Args:
        attributes (tuple[AttributeSpec, ...]): Attribute metadata.
        bins (np.ndarray): Bin index matrix.
        target (np.ndarray): Target vector.
        weights (np.ndarray): Weight vector.

    Raises:
        AttributeTypeError: If an attribute is neither binned nor nominal.
        DatasetValidationError: On the first inconsistency found.
    """
    n_instances, n_columns = bins.shape
    if n_columns != len(attributes):
        raise DatasetValidationError(f"bins has {n_columns} columns but {len(attributes)} attributes were given")
    if target.shape[0] != n_instances or weights.shape[0] != n_instances:
        raise DatasetValidationError(
            f"target ({target.shape[0]}) and weights ({weights.shape[0]}) must have one value per instance"
            f" ({n_instances})"
        )
    if not np.all(np.isfinite(target)):
        raise DatasetValidationError("target contains NaN or infinite values")
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise DatasetValidationError("weights must be finite and non-negative")

    for position, attribute in enumerate(attributes):
        size = attribute_size(attribute)
        if attribute.index != position:
            raise DatasetValidationError(
                f"attribute {attribute.name!r} has index {attribute.index} but sits at position {position}"
            )
        column = bins[:, position]
        out_of_range = (column != MISSING_BIN) & ((column < 0) | (column >= size))
        if np.any(out_of_range):
            raise DatasetValidationError(
                f"attribute {attribute.name!r} has bin values outside [0, {size}):"
                f" {np.unique(column[out_of_range]).tolist()}"
            )


# ---------------------------------------------------------------------------
# Private helpers -- Column encoding
# ---------------------------------------------------------------------------

type _ColumnKind = Literal["binned", "nominal", "unsupported"]

_INTEGER_DTYPES: frozenset[type[pl.DataType]] = frozenset({
    pl.Int8,
    pl.Int16,
    pl.Int32,
    pl.Int64,
    pl.UInt8,
    pl.UInt16,
    pl.UInt32,
    pl.UInt64,
})


def _classify_column(dtype: pl.DataType) -> _ColumnKind:
    """Map a Polars dtype onto the attribute kind it encodes.

    Args:
        dtype (pl.DataType): The column dtype.

    Returns:
        _ColumnKind: `"binned"` for integer and float columns, `"nominal"`
            for boolean and categorical-like columns, otherwise
            `"unsupported"`.
    """
    if dtype in _INTEGER_DTYPES or dtype in {pl.Float32, pl.Float64}:
        return "binned"
    if dtype in {pl.Boolean, pl.String, pl.Categorical} or isinstance(dtype, (pl.Enum, pl.Categorical)):
        return "nominal"
    return "unsupported"


def _encode_attribute(
    series: pl.Series,
    index: int,
    bin_count: int | None,
) -> tuple[AttributeSpec, np.ndarray]:
    """Encode one column into an attribute and its int64 bin codes.

    Args:
        series (pl.Series): The column to encode.
        index (int): Attribute index to assign.
        bin_count (int | None): Bin count from the upstream discretizer, if known.

    Returns:
        tuple[AttributeSpec, np.ndarray]: The attribute and its bin codes.

    Raises:
        UnbinnedAttributeError: If the column dtype is unsupported or its
            values are not valid bin indices.
    """
    if series.null_count() == series.len():
        # No observed value: one bin that every instance misses.
        size = bin_count if bin_count is not None else 1
        codes = np.full(series.len(), MISSING_BIN, dtype=np.int64)
        return BinnedAttribute(index=index, name=series.name, bin_count=size), codes
    kind = _classify_column(series.dtype)
    if kind == "binned":
        codes = _encode_binned_series(series)
        observed = int(codes.max()) + 1 if np.any(codes != MISSING_BIN) else 1
        size = bin_count if bin_count is not None else observed
        if size < observed:
            raise UnbinnedAttributeError(series.name, f"bin count {size} is smaller than observed bin {observed - 1}")
        return BinnedAttribute(index=index, name=series.name, bin_count=size), codes
    if kind == "nominal":
        codes, states = _encode_nominal_series(series)
        return NominalAttribute(index=index, name=series.name, states=states), codes
    raise UnbinnedAttributeError(series.name, f"unsupported dtype {series.dtype}")


def _encode_binned_series(series: pl.Series) -> np.ndarray:
    """Read an integer-valued column as bin codes, mapping null and NaN to `MISSING_BIN`.

    Args:
        series (pl.Series): An integer or float column.

    Returns:
        np.ndarray: int64 bin codes.

    Raises:
        UnbinnedAttributeError: If a present value is negative or non-integral.
    """
    values = series.cast(pl.Float64).fill_nan(None).to_numpy(allow_copy=True).astype(np.float64)
    present = ~np.isnan(values)
    if np.any(values[present] != np.floor(values[present])):
        raise UnbinnedAttributeError(series.name, "non-integral values; discretize the column first")
    if np.any(values[present] < 0):
        raise UnbinnedAttributeError(series.name, "negative bin indices")
    codes = np.full(values.shape[0], MISSING_BIN, dtype=np.int64)
    codes[present] = values[present].astype(np.int64)
    return codes


def _encode_nominal_series(series: pl.Series) -> tuple[np.ndarray, tuple[str, ...]]:
    """Ordinal-encode a categorical column, with nulls mapped to `MISSING_BIN`.

    Args:
        series (pl.Series): A boolean, string, Categorical or Enum column.

    Returns:
        tuple[np.ndarray, tuple[str, ...]]: int64 codes and the category labels
            ordered by code.

    """
    ordinal_encoder = OrdinalEncoder(
        handle_unknown="use_encoded_value",
        unknown_value=np.nan,
        encoded_missing_value=np.nan,
    )
    raw_column = series.cast(pl.String).to_numpy(allow_copy=True).astype(object).reshape(-1, 1)
    encoded = ordinal_encoder.fit_transform(raw_column).astype(np.float64).ravel()
    categories = [label for label in ordinal_encoder.categories_[0] if isinstance(label, str)]
    codes = np.where(np.isnan(encoded), MISSING_BIN, encoded).astype(np.int64)
    return codes, tuple(categories)


def _numeric_column(df: pl.DataFrame, name: str) -> np.ndarray:
    """Return a column as a float64 vector, rejecting nulls.

    Args:
        df (pl.DataFrame): The source DataFrame.
        name (str): Column name.

    Returns:
        np.ndarray: float64 values.

    Raises:
        DatasetValidationError: If the column contains nulls.
    """
    series = df[name]
    if series.null_count() > 0:
        raise DatasetValidationError(f"Column '{name}' contains null values. Remove or impute nulls first.")
    return series.cast(pl.Float64).to_numpy(allow_copy=True).astype(np.float64)
