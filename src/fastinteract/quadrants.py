"""Quadrant sufficient statistics for every split candidate of an attribute pair.

For a split `(v1, v2)` the both-present instances fall into four quadrants,
in this order::

    0: bin1 <= v1, bin2 <= v2      1: bin1 <= v1, bin2 > v2
    2: bin1 >  v1, bin2 <= v2      3: bin1 >  v1, bin2 > v2

Instances missing only attribute 1 are split by `v2`, instances missing only
attribute 2 are split by `v1`, and instances missing both form one constant
cell. Every instance is counted in exactly one of these places.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from fastinteract.histograms import CHistogram, Histogram2D


@dataclass
class QuadrantTable:
    """Quadrant and missing-value margin aggregates over all split candidates.

    Attributes:
        resp (np.ndarray): Weighted target sums, shape `(n1, n2, 4)`.
        count (np.ndarray): Weight totals, shape `(n1, n2, 4)`.
        resp_on_mv1 (np.ndarray): Attribute-1-missing sums split at `v2`
            into `[<= v2, > v2]`, shape `(n2, 2)`.
        count_on_mv1 (np.ndarray): Weights matching `resp_on_mv1`.
        resp_on_mv2 (np.ndarray): Attribute-2-missing sums split at `v1`
            into `[<= v1, > v1]`, shape `(n1, 2)`.
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
    resp_on_mv12: float
    count_on_mv12: float

    @property
    def split_shape(self) -> tuple[int, int]:
        """Number of split candidates along each attribute, `(n1, n2)`."""
        return self.resp.shape[0], self.resp.shape[1]


def split_candidate_count(size: int) -> int:
    """Return how many split points an attribute with `size` bins offers.

    The last bin is never a split point because everything is `<=` it. A
    single-bin attribute still offers the one degenerate split `0`.

    Args:
        size (int): Number of bins.

    Returns:
        int: `max(size - 1, 1)`.
    """
    return max(size - 1, 1)


def build_quadrant_table(hist2d: Histogram2D, chist1: CHistogram, chist2: CHistogram) -> QuadrantTable:
    """Build the quadrant table of a pair from its joint and cumulative histograms.

    The `<= v1, <= v2` quadrant comes from 2D prefix sums of the joint
    histogram. The other three follow by inclusion-exclusion against the
    both-present margins, which are the cumulative histograms minus the
    cumulative single-missing margins.

    Args:
        hist2d (Histogram2D): Joint histogram of the pair.
        chist1 (CHistogram): Cumulative histogram of attribute 1.
        chist2 (CHistogram): Cumulative histogram of attribute 2.

    Returns:
        QuadrantTable: Aggregates for every split candidate.
    """
    n1 = split_candidate_count(chist1.size)
    n2 = split_candidate_count(chist2.size)

    resp, resp_on_mv1, resp_on_mv2 = _quadrant_sums(
        joint=hist2d.resp,
        cumulative1=chist1.sum,
        cumulative2=chist2.sum,
        on_mv1=hist2d.resp_on_mv1,
        on_mv2=hist2d.resp_on_mv2,
        total_on_mv1=chist1.sum_on_mv - hist2d.resp_on_mv12,
        total_on_mv2=chist2.sum_on_mv - hist2d.resp_on_mv12,
        n1=n1,
        n2=n2,
    )
    count, count_on_mv1, count_on_mv2 = _quadrant_sums(
        joint=hist2d.count,
        cumulative1=chist1.count,
        cumulative2=chist2.count,
        on_mv1=hist2d.count_on_mv1,
        on_mv2=hist2d.count_on_mv2,
        total_on_mv1=chist1.count_on_mv - hist2d.count_on_mv12,
        total_on_mv2=chist2.count_on_mv - hist2d.count_on_mv12,
        n1=n1,
        n2=n2,
    )
    return QuadrantTable(
        resp=resp,
        count=count,
        resp_on_mv1=resp_on_mv1,
        count_on_mv1=count_on_mv1,
        resp_on_mv2=resp_on_mv2,
        count_on_mv2=count_on_mv2,
        resp_on_mv12=hist2d.resp_on_mv12,
        count_on_mv12=hist2d.count_on_mv12,
    )


def _quadrant_sums(
    *,
    joint: np.ndarray,
    cumulative1: np.ndarray,
    cumulative2: np.ndarray,
    on_mv1: np.ndarray,
    on_mv2: np.ndarray,
    total_on_mv1: float,
    total_on_mv2: float,
    n1: int,
    n2: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Derive quadrant and margin tables for one statistic (response or count).

    Args:
        joint (np.ndarray): Raw joint histogram, shape `(size1, size2)`.
        cumulative1 (np.ndarray): Cumulative histogram of attribute 1.
        cumulative2 (np.ndarray): Cumulative histogram of attribute 2.
        on_mv1 (np.ndarray): Attribute-1-missing margin keyed by attribute-2 bin.
        on_mv2 (np.ndarray): Attribute-2-missing margin keyed by attribute-1 bin.
        total_on_mv1 (float): Total of `on_mv1`, from the cumulative histogram.
        total_on_mv2 (float): Total of `on_mv2`, from the cumulative histogram.
        n1 (int): Split candidates along attribute 1.
        n2 (int): Split candidates along attribute 2.

    Returns:
        tuple[np.ndarray, np.ndarray, np.ndarray]: Quadrants `(n1, n2, 4)`,
            attribute-1-missing halves `(n2, 2)` and attribute-2-missing
            halves `(n1, 2)`.
    """
    prefix = np.cumsum(np.cumsum(joint, axis=0), axis=1)[:n1, :n2]

    cum_on_mv1 = np.cumsum(on_mv1)
    cum_on_mv2 = np.cumsum(on_mv2)
    total = cumulative1[-1] - cum_on_mv2[-1]
    cum_on_mv1 = cum_on_mv1[:n2]
    cum_on_mv2 = cum_on_mv2[:n1]

    # both-present mass with bin1 <= v1 (rows) and bin2 <= v2 (columns)
    rows = (cumulative1[:n1] - cum_on_mv2)[:, np.newaxis]
    cols = (cumulative2[:n2] - cum_on_mv1)[np.newaxis, :]

    quadrants = np.stack([prefix, rows - prefix, cols - prefix, total - rows - cols + prefix], axis=-1)
    halves_on_mv1 = np.stack([cum_on_mv1, total_on_mv1 - cum_on_mv1], axis=-1)
    halves_on_mv2 = np.stack([cum_on_mv2, total_on_mv2 - cum_on_mv2], axis=-1)
    return quadrants, halves_on_mv1, halves_on_mv2
