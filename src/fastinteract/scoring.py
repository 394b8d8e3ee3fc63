"""Interaction weight evaluation and the per-worker scoring routine.

The RSS of a piecewise-constant fit is computed from sufficient statistics
only::

    RSS = y_sq + sum_k(pred_k**2 * count_k) - 2 * sum_k(pred_k * resp_k)

where `k` ranges over the four quadrants, the two halves of each single-
missing margin and the both-missing cell, and `pred_k = resp_k / count_k`
(0 for an empty cell).
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np
from loguru import logger

from fastinteract.dataset import Dataset
from fastinteract.histograms import build_cumulative_histograms, build_joint_histogram
from fastinteract.logging import PROGRESS_LEVEL
from fastinteract.models import ProgressCallback, ProgressEvent, RankingPhase, ScoredPair
from fastinteract.quadrants import QuadrantTable, build_quadrant_table


class BestSplit(NamedTuple):
    """The split point reaching the lowest RSS for a pair.

    Attributes:
        v1 (int): Split bin of attribute 1 (`<= v1` is the low side).
        v2 (int): Split bin of attribute 2 (`<= v2` is the low side).
        rss (float): RSS at that split.
    """

    v1: int
    v2: int
    rss: float


# ---------------------------------------------------------------------------
# Public interface -- RSS evaluation
# ---------------------------------------------------------------------------


def safe_divide(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """Element-wise division returning 0 wherever the denominator is 0.

    Args:
        numerator (np.ndarray): Dividend.
        denominator (np.ndarray): Divisor, same shape as `numerator`.

    Returns:
        np.ndarray: `numerator / denominator`, with 0 for empty cells.
    """
    numerator = np.asarray(numerator, dtype=np.float64)
    denominator = np.asarray(denominator, dtype=np.float64)
    return np.divide(numerator, denominator, out=np.zeros_like(numerator), where=denominator != 0)


def rss_grid(table: QuadrantTable, y_sq: float) -> np.ndarray:
    """Compute the RSS of every split candidate of a pair.

    Args:
        table (QuadrantTable): Quadrant aggregates of the pair.
        y_sq (float): Weighted sum of squared targets over all instances.

    Returns:
        np.ndarray: RSS values of shape `table.split_shape`.
    """
    quadrants = _cell_terms(table.resp, table.count)
    on_mv1 = _cell_terms(table.resp_on_mv1, table.count_on_mv1)
    on_mv2 = _cell_terms(table.resp_on_mv2, table.count_on_mv2)
    on_mv12 = _constant_cell_term(table.resp_on_mv12, table.count_on_mv12)
    return y_sq + quadrants + on_mv1[np.newaxis, :] + on_mv2[:, np.newaxis] + on_mv12


def split_rss(table: QuadrantTable, y_sq: float, v1: int, v2: int) -> float:
    """Compute the RSS of a single split candidate.

    Args:
        table (QuadrantTable): Quadrant aggregates of the pair.
        y_sq (float): Weighted sum of squared targets over all instances.
        v1 (int): Split bin of attribute 1.
        v2 (int): Split bin of attribute 2.

    Returns:
        float: RSS of the seven-cell fit at `(v1, v2)` plus the both-missing cell.
    """
    quadrants = _cell_terms(table.resp[v1, v2], table.count[v1, v2])
    on_mv1 = _cell_terms(table.resp_on_mv1[v2], table.count_on_mv1[v2])
    on_mv2 = _cell_terms(table.resp_on_mv2[v1], table.count_on_mv2[v1])
    on_mv12 = _constant_cell_term(table.resp_on_mv12, table.count_on_mv12)
    return float(y_sq + quadrants + on_mv1 + on_mv2 + on_mv12)


def find_best_split(table: QuadrantTable, y_sq: float) -> BestSplit:
    """Locate the split candidate with the minimum RSS.

    Ties resolve to the first candidate in row-major `(v1, v2)` order.

    Args:
        table (QuadrantTable): Quadrant aggregates of the pair.
        y_sq (float): Weighted sum of squared targets over all instances.

    Returns:
        BestSplit: The best split and its RSS.
    """
    grid = rss_grid(table, y_sq)
    v1, v2 = np.unravel_index(int(np.argmin(grid)), grid.shape)
    return BestSplit(v1=int(v1), v2=int(v2), rss=float(grid[v1, v2]))


def evaluate_weight(table: QuadrantTable, y_sq: float) -> float:
    """Return the interaction weight of a pair: its minimum RSS over all splits.

    Args:
        table (QuadrantTable): Quadrant aggregates of the pair.
        y_sq (float): Weighted sum of squared targets over all instances.

    Returns:
        float: The minimum RSS; lower means a stronger interaction.
    """
    return float(rss_grid(table, y_sq).min())


# ---------------------------------------------------------------------------
# Public interface -- Worker
# ---------------------------------------------------------------------------


def score_pairs(
    dataset: Dataset,
    pairs: Sequence[tuple[int, int]],
    *,
    worker: int | None = None,
    on_progress: ProgressCallback | None = None,
    started_at: float | None = None,
) -> list[ScoredPair]:
    """Score a list of attribute pairs.

    Builds cumulative histograms only for the attributes these pairs
    reference, then scores each pair from its joint histogram. The dataset is
    only read; the returned list is new.

    Args:
        dataset (Dataset): The dataset view, with targets populated.
        pairs (Sequence[tuple[int, int]]): Pairs `(f1, f2)` with `f1 < f2`.
        worker (int | None): Worker index, used for progress reporting.
        on_progress (ProgressCallback | None): Optional checkpoint callback.
        started_at (float | None): `time.perf_counter()` value at run start,
            used for elapsed times. Defaults to the call time.

    Returns:
        list[ScoredPair]: One scored pair per input pair, in input order.

    Raises:
        AttributeTypeError: If a referenced attribute is neither binned nor nominal.
    """
    started_at = time.perf_counter() if started_at is None else started_at
    used = {index for pair in pairs for index in pair}
    histograms, y_sq = build_cumulative_histograms(dataset, used)
    report_progress(
        on_progress,
        RankingPhase.HISTOGRAMS_BUILT,
        pair_count=len(pairs),
        worker=worker,
        started_at=started_at,
        attributes=len(used),
    )

    scored: list[ScoredPair] = []
    for f1, f2 in pairs:
        chist1, chist2 = histograms[f1], histograms[f2]
        hist2d = build_joint_histogram(dataset, f1, f2, chist1.size, chist2.size)
        table = build_quadrant_table(hist2d, chist1, chist2)
        scored.append(ScoredPair(f1=f1, f2=f2, weight=evaluate_weight(table, y_sq)))

    report_progress(
        on_progress,
        RankingPhase.WORKER_FINISHED,
        pair_count=len(pairs),
        worker=worker,
        started_at=started_at,
    )
    return scored


def report_progress(
    on_progress: ProgressCallback | None,
    phase: RankingPhase,
    *,
    pair_count: int,
    started_at: float,
    worker: int | None = None,
    **extra: object,
) -> None:
    """Log a run checkpoint and forward it to the optional callback.

    Args:
        on_progress (ProgressCallback | None): Callback to notify, if any.
        phase (RankingPhase): The checkpoint reached.
        pair_count (int): Pairs concerned by the checkpoint.
        started_at (float): `time.perf_counter()` value at run start.
        worker (int | None): Worker index for worker-level checkpoints.
        **extra (object): Additional structured fields for the log record.
    """
    event = ProgressEvent(
        phase=phase,
        pair_count=pair_count,
        worker=worker,
        elapsed_seconds=max(time.perf_counter() - started_at, 0.0),
    )
    logger.log(
        PROGRESS_LEVEL,
        "Ranking checkpoint: {phase}",
        phase=phase.value,
        pair_count=pair_count,
        worker=worker,
        elapsed_seconds=round(event.elapsed_seconds, 3),
        **extra,
    )
    if on_progress is not None:
        on_progress(event)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _cell_terms(resp: np.ndarray, count: np.ndarray) -> np.ndarray:
    """Sum `pred**2 * count - 2 * pred * resp` over the last (cell) axis.

    Args:
        resp (np.ndarray): Weighted target sums, cells on the last axis.
        count (np.ndarray): Weight totals, same shape as `resp`.

    Returns:
        np.ndarray: The per-split RSS contribution of these cells.
    """
    pred = safe_divide(resp, count)
    return (pred * pred * count).sum(axis=-1) - 2 * (pred * resp).sum(axis=-1)


def _constant_cell_term(resp: float, count: float) -> float:
    """RSS contribution of the both-missing cell, which no split changes.

    Args:
        resp (float): Weighted target sum of the cell.
        count (float): Weight total of the cell.

    Returns:
        float: `pred**2 * count - 2 * pred * resp` with `pred = resp / count`.
    """
    pred = resp / count if count != 0 else 0.0
    return pred * pred * count - 2 * pred * resp
