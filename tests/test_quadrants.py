"""Tests for the quadrant table builder."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose
from pytest_check import check

from fastinteract.dataset import MISSING_BIN, Dataset
from fastinteract.histograms import build_cumulative_histograms, build_joint_histogram
from fastinteract.models import BinnedAttribute
from fastinteract.quadrants import QuadrantTable, build_quadrant_table, split_candidate_count


class TestSplitCandidateCount:
    """Tests for `split_candidate_count`."""

    @pytest.mark.parametrize(("size", "expected"), [(1, 1), (2, 1), (3, 2), (16, 15)])
    def test_last_bin_is_never_a_split_point(self, size: int, expected: int) -> None:
        """An attribute with `size` bins offers `size - 1` splits, and at least one."""
        assert split_candidate_count(size) == expected


class TestBuildQuadrantTable:
    """Tests for `build_quadrant_table`."""

    def test_xor_grid_has_one_instance_per_quadrant(self) -> None:
        """On the 2x2 grid the single split `(0, 0)` isolates every instance."""
        # Arrange
        dataset = Dataset(
            attributes=(
                BinnedAttribute(index=0, name="x1", bin_count=2),
                BinnedAttribute(index=1, name="x2", bin_count=2),
            ),
            bins=np.array([[0, 0], [0, 1], [1, 0], [1, 1]]),
            target=np.array([2.0, 0.0, 0.0, 2.0]),
            weights=np.ones(4),
        )

        # Act
        table = _table_for(dataset, 0, 1)

        # Assert
        with check:
            assert table.split_shape == (1, 1)
        with check:
            assert_allclose(table.resp[0, 0], [2.0, 0.0, 0.0, 2.0])
        with check:
            assert_allclose(table.count[0, 0], [1.0, 1.0, 1.0, 1.0])
        with check:
            assert_allclose(table.count_on_mv1, np.zeros((1, 2)))

    def test_quadrants_match_direct_instance_counts(self) -> None:
        """Every quadrant and margin half should equal a direct scan of the instances."""
        # Arrange
        dataset = _make_dataset_with_missing_values(seed=7)

        # Act
        table = _table_for(dataset, 0, 1)

        # Assert
        n1, n2 = table.split_shape
        for v1 in range(n1):
            for v2 in range(n2):
                expected = _direct_cells(dataset, v1, v2)
                with check:
                    assert_allclose(table.resp[v1, v2], expected["resp"], atol=1e-9)
                with check:
                    assert_allclose(table.count[v1, v2], expected["count"], atol=1e-9)
                with check:
                    assert_allclose(table.resp_on_mv1[v2], expected["resp_on_mv1"], atol=1e-9)
                with check:
                    assert_allclose(table.count_on_mv1[v2], expected["count_on_mv1"], atol=1e-9)
                with check:
                    assert_allclose(table.resp_on_mv2[v1], expected["resp_on_mv2"], atol=1e-9)
                with check:
                    assert_allclose(table.count_on_mv2[v1], expected["count_on_mv2"], atol=1e-9)

    def test_every_instance_is_counted_once_per_split(self) -> None:
        """Quadrants, margin halves and the both-missing cell partition the total weight."""
        # Arrange
        dataset = _make_dataset_with_missing_values(seed=13)

        # Act
        table = _table_for(dataset, 0, 1)

        # Assert
        per_split = (
            table.count.sum(axis=-1)
            + table.count_on_mv1.sum(axis=-1)[np.newaxis, :]
            + table.count_on_mv2.sum(axis=-1)[:, np.newaxis]
            + table.count_on_mv12
        )
        assert_allclose(per_split, np.full(table.split_shape, dataset.weights.sum()))

    def test_single_bin_attribute_has_one_degenerate_split(self) -> None:
        """A one-bin attribute puts every present instance on the low side."""
        # Arrange
        dataset = Dataset(
            attributes=(
                BinnedAttribute(index=0, name="flag", bin_count=1),
                BinnedAttribute(index=1, name="x", bin_count=3),
            ),
            bins=np.array([[0, 0], [0, 1], [0, 2], [0, 2]]),
            target=np.array([1.0, 2.0, 3.0, 4.0]),
            weights=np.ones(4),
        )

        # Act
        table = _table_for(dataset, 0, 1)

        # Assert
        with check:
            assert table.split_shape == (1, 2)
        with check:
            assert_allclose(table.count[0, :, 2:], np.zeros((2, 2)))
        with check:
            assert_allclose(table.resp[0, :, 0], [1.0, 3.0])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _table_for(dataset: Dataset, f1: int, f2: int) -> QuadrantTable:
    """Run the histogram builders and the quadrant builder for one pair."""
    histograms, _ = build_cumulative_histograms(dataset, {f1, f2})
    chist1, chist2 = histograms[f1], histograms[f2]
    hist2d = build_joint_histogram(dataset, f1, f2, chist1.size, chist2.size)
    return build_quadrant_table(hist2d, chist1, chist2)


def _make_dataset_with_missing_values(seed: int) -> Dataset:
    """Two binned attributes (4 and 5 bins) with about 20% missing values each."""
    rng = np.random.default_rng(seed)
    n_instances = 120
    bins = np.column_stack([rng.integers(0, 4, n_instances), rng.integers(0, 5, n_instances)])
    bins[rng.random(bins.shape) < 0.2] = MISSING_BIN
    return Dataset(
        attributes=(
            BinnedAttribute(index=0, name="a", bin_count=4),
            BinnedAttribute(index=1, name="b", bin_count=5),
        ),
        bins=bins,
        target=rng.normal(2.0, 1.0, n_instances),
        weights=rng.uniform(0.1, 3.0, n_instances),
    )


def _direct_cells(dataset: Dataset, v1: int, v2: int) -> dict[str, np.ndarray]:
    """Aggregate the instances of attributes 0 and 1 cell by cell for split `(v1, v2)`."""
    bins1, bins2 = dataset.bins[:, 0], dataset.bins[:, 1]
    resp = dataset.target * dataset.weights
    weights = dataset.weights
    present1, present2 = bins1 != MISSING_BIN, bins2 != MISSING_BIN
    low1, low2 = bins1 <= v1, bins2 <= v2
    both = present1 & present2
    quadrant_masks = [both & low1 & low2, both & low1 & ~low2, both & ~low1 & low2, both & ~low1 & ~low2]
    only1 = ~present1 & present2
    only2 = present1 & ~present2
    return {
        "resp": np.array([resp[mask].sum() for mask in quadrant_masks]),
        "count": np.array([weights[mask].sum() for mask in quadrant_masks]),
        "resp_on_mv1": np.array([resp[only1 & low2].sum(), resp[only1 & ~low2].sum()]),
        "count_on_mv1": np.array([weights[only1 & low2].sum(), weights[only1 & ~low2].sum()]),
        "resp_on_mv2": np.array([resp[only2 & low1].sum(), resp[only2 & ~low1].sum()]),
        "count_on_mv2": np.array([weights[only2 & low1].sum(), weights[only2 & ~low1].sum()]),
    }
