"""Cumulative per-attribute histograms and joint two-attribute histograms.

Both builders accumulate `(target * weight, weight)` sufficient statistics;
nothing downstream revisits individual instances.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

import numpy as np

from fastinteract.dataset import MISSING_BIN, Dataset
from fastinteract.models import attribute_size


@dataclass
class CHistogram:
    """Cumulative histogram of one attribute.

    After construction `sum[i]` is the weighted target total over every
    instance whose bin is `<= i`, and `count[i]` the matching weight total.
    Instances missing the attribute only feed `sum_on_mv` / `count_on_mv`.

    Attributes:
        sum (np.ndarray): Cumulative weighted target sums, one per bin.
        count (np.ndarray): Cumulative weight totals, one per bin.
        sum_on_mv (float): Weighted target sum over missing values.
        count_on_mv (float): Weight total over missing values.
    """

    sum: np.ndarray
    count: np.ndarray
    sum_on_mv: float = 0.0
    count_on_mv: float = 0.0

    @property
    def size(self) -> int:
        """Number of bins."""
        return self.sum.shape[0]

    @property
    def has_missing_values(self) -> bool:
        """Whether any weight fell on a missing value."""
        return self.count_on_mv > 0


@dataclass
class Histogram2D:
    """Raw (non-cumulative) joint histogram of an attribute pair.

    Attributes:
        resp (np.ndarray): Weighted target sums, shape `(size1, size2)`,
            over instances present on both attributes.
        count (np.ndarray): Weight totals matching `resp`.
        resp_on_mv1 (np.ndarray): Sums over instances missing only
            attribute 1, keyed by attribute-2 bin.
        count_on_mv1 (np.ndarray): Weights matching `resp_on_mv1`.
        resp_on_mv2 (np.ndarray): Sums over instances missing only
            attribute 2, keyed by attribute-1 bin.
        count_on_mv2 (np.ndarray): Weights matching `resp_on_mv2`.
        resp_on_mv12 (float): Sum over instances missing both attributes.
        count_on_mv12 (float): Weight over instances missing both attributes.
    """

    resp: np.ndarray
    count: np.ndarray
    resp_on_mv1: np.ndarray
    count_on_mv1: np.ndarray
    resp_on_mv2: np.ndarray
    count_on_mv2: np.ndarray
    resp_on_mv12: float = 0.0
    count_on_mv12: float = 0.0

    @property
    def shape(self) -> tuple[int, int]:
        """`(size1, size2)`."""
        return self.resp.shape  # type: ignore[return-value]


def build_cumulative_histograms(
    dataset: Dataset,
    used: Collection[int],
) -> tuple[dict[int, CHistogram], float]:
    """Build cumulative histograms for the attributes listed in `used`.

    Args:
        dataset (Dataset): The dataset view.
        used (Collection[int]): Indices of attributes referenced by at least
            one pair to score.

    Returns:
        tuple[dict[int, CHistogram], float]: Histograms keyed by attribute
            index, and `y_sq`, the weighted sum of squared targets over all
            instances.

    Raises:
        AttributeTypeError: If a used attribute is neither binned nor nominal.
    """
    weighted_target = dataset.target * dataset.weights
    histograms: dict[int, CHistogram] = {}
    for index in sorted(used):
        size = attribute_size(dataset.attributes[index])
        column = dataset.bins[:, index]
        missing = column == MISSING_BIN
        present = ~missing
        sums = np.bincount(column[present], weights=weighted_target[present], minlength=size)
        counts = np.bincount(column[present], weights=dataset.weights[present], minlength=size)
        histograms[index] = CHistogram(
            sum=np.cumsum(sums),
            count=np.cumsum(counts),
            sum_on_mv=float(weighted_target[missing].sum()),
            count_on_mv=float(dataset.weights[missing].sum()),
        )

    y_sq = float(np.sum(dataset.target * dataset.target * dataset.weights))
    return histograms, y_sq


def build_joint_histogram(dataset: Dataset, f1: int, f2: int, size1: int, size2: int) -> Histogram2D:
    """Build the joint histogram of attributes `f1` and `f2`.

    Every instance lands in exactly one of four places depending on which of
    the two values are missing.

    Args:
        dataset (Dataset): The dataset view.
        f1 (int): Index of the first attribute.
        f2 (int): Index of the second attribute.
        size1 (int): Bin count of `f1`.
        size2 (int): Bin count of `f2`.

    Returns:
        Histogram2D: The joint histogram for the pair.
    """
    bins1 = dataset.bins[:, f1]
    bins2 = dataset.bins[:, f2]
    weights = dataset.weights
    weighted_target = dataset.target * weights
    missing1 = bins1 == MISSING_BIN
    missing2 = bins2 == MISSING_BIN

    both = ~missing1 & ~missing2
    cells = bins1[both] * size2 + bins2[both]
    resp = np.bincount(cells, weights=weighted_target[both], minlength=size1 * size2).reshape(size1, size2)
    count = np.bincount(cells, weights=weights[both], minlength=size1 * size2).reshape(size1, size2)

    only1 = missing1 & ~missing2
    only2 = ~missing1 & missing2
    neither = missing1 & missing2
    return Histogram2D(
        resp=resp,
        count=count,
        resp_on_mv1=np.bincount(bins2[only1], weights=weighted_target[only1], minlength=size2),
        count_on_mv1=np.bincount(bins2[only1], weights=weights[only1], minlength=size2),
        resp_on_mv2=np.bincount(bins1[only2], weights=weighted_target[only2], minlength=size1),
        count_on_mv2=np.bincount(bins1[only2], weights=weights[only2], minlength=size1),
        resp_on_mv12=float(weighted_target[neither].sum()),
        count_on_mv12=float(weights[neither].sum()),
    )
