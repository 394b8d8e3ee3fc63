"""Tests for the `Dataset` view and its construction from Polars DataFrames."""

from __future__ import annotations

import numpy as np
import polars as pl
import pytest
from numpy.testing import assert_array_equal
from pytest_check import check

from fastinteract.dataset import MISSING_BIN, Dataset
from fastinteract.exceptions import (
    AttributeTypeError,
    DatasetValidationError,
    ResidualCountError,
    UnbinnedAttributeError,
)
from fastinteract.models import BinnedAttribute, NominalAttribute


class TestDatasetConstruction:
    """Tests for `Dataset` validation on construction."""

    def test_arrays_are_coerced_and_read_only(self) -> None:
        """Lists are converted to int64/float64 arrays that cannot be written."""
        # Arrange & Act
        dataset = _make_dataset()

        # Assert
        with check:
            assert dataset.bins.dtype == np.int64
        with check:
            assert dataset.target.dtype == np.float64
        with check:
            assert not dataset.bins.flags.writeable
        with check:
            assert not dataset.weights.flags.writeable
        with pytest.raises(ValueError):
            dataset.bins[0, 0] = 1

    def test_construction_copies_input_arrays(self) -> None:
        """Mutating the caller's arrays afterwards does not change the dataset."""
        # Arrange
        bins = np.array([[0, 1], [1, 0]])
        target = np.array([1.0, 2.0])

        # Act
        dataset = Dataset(attributes=_two_binned(2, 2), bins=bins, target=target, weights=np.ones(2))
        bins[0, 0] = 1
        target[0] = 99.0

        # Assert
        with check:
            assert dataset.bins[0, 0] == 0
        with check:
            assert dataset.target[0] == 1.0

    def test_basic_properties(self) -> None:
        """Length, attribute count, names and sizes are exposed."""
        # Arrange
        dataset = _make_dataset()

        # Act & Assert
        with check:
            assert len(dataset) == 4
        with check:
            assert dataset.n_attributes == 2
        with check:
            assert dataset.attribute_names == ["x1", "x2"]
        with check:
            assert dataset.attribute_sizes() == [2, 3]
        with check:
            assert_array_equal(dataset.is_missing(1), [False, False, False, True])

    @pytest.mark.parametrize(
        ("bins", "message"),
        [
            ([[0, 3], [1, 0]], "outside"),
            ([[0, -4], [1, 0]], "outside"),
            ([[0], [1]], "columns"),
        ],
        ids=["bin_too_large", "negative_bin", "column_count"],
    )
    def test_rejects_inconsistent_bins(self, bins: list[list[int]], message: str) -> None:
        """Out-of-range bins and column-count mismatches are rejected."""
        with pytest.raises(DatasetValidationError, match=message):
            Dataset(attributes=_two_binned(2, 3), bins=np.array(bins), target=np.zeros(2), weights=np.ones(2))

    def test_rejects_negative_weights(self) -> None:
        """Weights must be non-negative."""
        with pytest.raises(DatasetValidationError, match="weights"):
            Dataset(
                attributes=_two_binned(2, 2),
                bins=np.zeros((2, 2), dtype=np.int64),
                target=np.zeros(2),
                weights=np.array([1.0, -1.0]),
            )

    def test_rejects_non_finite_target(self) -> None:
        """NaN targets would poison every RSS value."""
        with pytest.raises(DatasetValidationError, match="target"):
            Dataset(
                attributes=_two_binned(2, 2),
                bins=np.zeros((2, 2), dtype=np.int64),
                target=np.array([np.nan, 0.0]),
                weights=np.ones(2),
            )

    def test_rejects_misplaced_attribute_index(self) -> None:
        """Attribute `index` must match its position."""
        # Arrange
        attributes = (
            BinnedAttribute(index=1, name="a", bin_count=2),
            BinnedAttribute(index=0, name="b", bin_count=2),
        )

        # Act & Assert
        with pytest.raises(DatasetValidationError, match="index"):
            Dataset(attributes=attributes, bins=np.zeros((1, 2)), target=np.zeros(1), weights=np.ones(1))

    def test_rejects_unsupported_attribute_type(self) -> None:
        """An attribute that is neither binned nor nominal raises `AttributeTypeError`."""
        with pytest.raises(AttributeTypeError):
            Dataset(
                attributes=("not-an-attribute",),  # type: ignore[arg-type]
                bins=np.zeros((1, 1)),
                target=np.zeros(1),
                weights=np.ones(1),
            )

    def test_one_dimensional_bins_are_a_single_attribute_column(self) -> None:
        """A 1-D bin vector holds one value per instance of a single attribute."""
        # Arrange
        attributes = (BinnedAttribute(index=0, name="x1", bin_count=3),)

        # Act
        dataset = Dataset(attributes=attributes, bins=np.array([0, 2, 1, 2]), target=np.zeros(4), weights=np.ones(4))

        # Assert
        with check:
            assert len(dataset) == 4
        with check:
            assert dataset.bins.shape == (4, 1)
        with check:
            assert_array_equal(dataset.bins[:, 0], [0, 2, 1, 2])


class TestWithTarget:
    """Tests for `Dataset.with_target`."""

    def test_replaces_target_and_keeps_bins(self) -> None:
        """The new dataset shares bins and weights but carries the residuals."""
        # Arrange
        dataset = _make_dataset()

        # Act
        updated = dataset.with_target([0.5, -0.5, 1.5, -1.5])

        # Assert
        with check:
            assert_array_equal(updated.target, [0.5, -0.5, 1.5, -1.5])
        with check:
            assert_array_equal(updated.bins, dataset.bins)
        with check:
            assert_array_equal(dataset.target, [1.0, 2.0, 3.0, 4.0])

    def test_residual_count_mismatch(self) -> None:
        """Fewer residuals than instances raises `ResidualCountError`."""
        # Arrange
        dataset = _make_dataset()

        # Act
        with pytest.raises(ResidualCountError) as exc_info:
            dataset.with_target([0.0, 1.0, 2.0])

        # Assert
        with check:
            assert exc_info.value.expected == 4
        with check:
            assert exc_info.value.actual == 3


class TestFromPolars:
    """Tests for `Dataset.from_polars`."""

    def test_integer_columns_become_binned_attributes(self) -> None:
        """Bin counts default to `max + 1`; nulls become `MISSING_BIN`."""
        # Arrange
        df = pl.DataFrame({
            "age_bin": [0, 3, 1, None],
            "income_bin": [2, 0, 1, 1],
            "residual": [0.1, -0.2, 0.3, 0.0],
        })

        # Act
        dataset = Dataset.from_polars(df, target="residual")

        # Assert
        with check:
            assert dataset.attributes == (
                BinnedAttribute(index=0, name="age_bin", bin_count=4),
                BinnedAttribute(index=1, name="income_bin", bin_count=3),
            )
        with check:
            assert_array_equal(dataset.bins[:, 0], [0, 3, 1, MISSING_BIN])
        with check:
            assert_array_equal(dataset.target, [0.1, -0.2, 0.3, 0.0])
        with check:
            assert_array_equal(dataset.weights, np.ones(4))

    def test_integral_floats_with_nan_are_accepted(self) -> None:
        """Float columns holding whole numbers are bins; NaN is a missing value."""
        # Arrange
        df = pl.DataFrame({"score_bin": [1.0, float("nan"), 0.0, 2.0]})

        # Act
        dataset = Dataset.from_polars(df)

        # Assert
        with check:
            assert_array_equal(dataset.bins[:, 0], [1, MISSING_BIN, 0, 2])
        with check:
            assert_array_equal(dataset.target, np.zeros(4))

    def test_string_columns_become_nominal_attributes(self) -> None:
        """String columns are ordinal-encoded in sorted category order."""
        # Arrange
        df = pl.DataFrame({"plan": ["pro", "basic", None, "pro"], "tenure_bin": [0, 1, 1, 0]})

        # Act
        dataset = Dataset.from_polars(df)

        # Assert
        plan = dataset.attributes[0]
        with check:
            assert isinstance(plan, NominalAttribute)
        with check:
            assert plan.states == ("basic", "pro")
        with check:
            assert_array_equal(dataset.bins[:, 0], [1, 0, MISSING_BIN, 1])

    def test_bin_counts_override_observed_maximum(self) -> None:
        """A discretizer may produce bins that no instance falls into."""
        # Arrange
        df = pl.DataFrame({"age_bin": [0, 1, 1]})

        # Act
        dataset = Dataset.from_polars(df, bin_counts={"age_bin": 8})

        # Assert
        assert dataset.attribute_sizes() == [8]

    def test_bin_count_smaller_than_observed_is_rejected(self) -> None:
        """Declared bin counts must cover every observed bin."""
        with pytest.raises(UnbinnedAttributeError, match="age_bin"):
            Dataset.from_polars(pl.DataFrame({"age_bin": [0, 5]}), bin_counts={"age_bin": 3})

    @pytest.mark.parametrize(
        "values",
        [[0.5, 1.0, 2.0], [-1, 0, 1]],
        ids=["non_integral", "negative"],
    )
    def test_unbinned_numeric_columns_are_rejected(self, values: list[float]) -> None:
        """Raw numeric values must be discretized upstream."""
        with pytest.raises(UnbinnedAttributeError) as exc_info:
            Dataset.from_polars(pl.DataFrame({"income": values}))

        assert exc_info.value.column == "income"

    def test_weight_column_is_used_and_excluded(self) -> None:
        """The weight column feeds `weights` and is not an attribute."""
        # Arrange
        df = pl.DataFrame({"a": [0, 1], "b": [1, 0], "w": [0.5, 2.0]})

        # Act
        dataset = Dataset.from_polars(df, weight="w")

        # Assert
        with check:
            assert dataset.attribute_names == ["a", "b"]
        with check:
            assert_array_equal(dataset.weights, [0.5, 2.0])

    def test_excluded_columns_are_not_attributes(self) -> None:
        """Label and identifier columns named in `exclude` are skipped, even when unbinned."""
        # Arrange
        df = pl.DataFrame({"id": ["r1", "r2", "r3"], "a": [0, 1, 1], "label": [0.25, 1.5, -3.0], "b": [1, 0, 2]})

        # Act
        dataset = Dataset.from_polars(df, exclude=["id", "label"])

        # Assert
        with check:
            assert dataset.attribute_names == ["a", "b"]
        with check:
            assert [attribute.index for attribute in dataset.attributes] == [0, 1]
        with check:
            assert dataset.bins.shape == (3, 2)

    def test_unknown_excluded_column_is_rejected(self) -> None:
        """Excluding a column that does not exist is an error."""
        with pytest.raises(DatasetValidationError, match="label"):
            Dataset.from_polars(pl.DataFrame({"a": [0, 1]}), exclude=["label"])

    @pytest.mark.parametrize(
        "dtype",
        [pl.String, pl.Int64, pl.Float64],
        ids=["string", "integer", "float"],
    )
    def test_all_null_column_becomes_single_bin_attribute(self, dtype: pl.DataType) -> None:
        """A column without any value is one bin missing on every instance."""
        # Arrange
        df = pl.DataFrame({"a": [0, 1, 1], "empty": pl.Series([None, None, None], dtype=dtype)})

        # Act
        dataset = Dataset.from_polars(df)

        # Assert
        empty = dataset.attributes[1]
        with check:
            assert isinstance(empty, BinnedAttribute)
        with check:
            assert dataset.attribute_sizes() == [2, 1]
        with check:
            assert_array_equal(dataset.bins[:, 1], [MISSING_BIN] * 3)
        with check:
            assert dataset.is_missing(1).all()

    def test_all_null_column_keeps_declared_bin_count(self) -> None:
        """A declared bin count still applies to a column with no values."""
        # Arrange
        df = pl.DataFrame({"empty": pl.Series([None, None], dtype=pl.String)})

        # Act
        dataset = Dataset.from_polars(df, bin_counts={"empty": 4})

        # Assert
        assert dataset.attribute_sizes() == [4]

    def test_unknown_reserved_column_is_rejected(self) -> None:
        """Naming a target or weight column that does not exist is an error."""
        with pytest.raises(DatasetValidationError, match="not found"):
            Dataset.from_polars(pl.DataFrame({"a": [0, 1]}), weight="w")

    def test_null_target_is_rejected(self) -> None:
        """The target column must be complete."""
        with pytest.raises(DatasetValidationError, match="null"):
            Dataset.from_polars(pl.DataFrame({"a": [0, 1], "y": [1.0, None]}), target="y")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _two_binned(size1: int, size2: int) -> tuple[BinnedAttribute, BinnedAttribute]:
    return (
        BinnedAttribute(index=0, name="x1", bin_count=size1),
        BinnedAttribute(index=1, name="x2", bin_count=size2),
    )


def _make_dataset() -> Dataset:
    return Dataset(
        attributes=_two_binned(2, 3),
        bins=[[0, 0], [1, 2], [0, 1], [1, MISSING_BIN]],  # type: ignore[arg-type]
        target=[1.0, 2.0, 3.0, 4.0],  # type: ignore[arg-type]
        weights=[1.0, 1.0, 2.0, 0.5],  # type: ignore[arg-type]
    )
