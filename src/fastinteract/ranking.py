"""Pair generation, round-robin partitioning, parallel scoring and ranking."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence

import polars as pl
from joblib import Parallel, delayed
from loguru import logger

from fastinteract.dataset import Dataset
from fastinteract.exceptions import ScoringWorkerError
from fastinteract.models import ProgressCallback, RankingPhase, ScoredPair
from fastinteract.scoring import report_progress, score_pairs

# ---------------------------------------------------------------------------
# Public interface -- Pair universe and partitioning
# ---------------------------------------------------------------------------


def generate_pairs(n_attributes: int) -> list[tuple[int, int]]:
    """Return every unordered attribute pair `(i, j)` with `i < j`.

    Args:
        n_attributes (int): Number of attributes.

    Returns:
        list[tuple[int, int]]: `n * (n - 1) / 2` pairs in lexicographic order.

    Examples:
        >>> generate_pairs(3)
        [(0, 1), (0, 2), (1, 2)]
    """
    return [(i, j) for i in range(n_attributes) for j in range(i + 1, n_attributes)]


def partition_pairs(pairs: Sequence[tuple[int, int]], n_workers: int) -> list[list[tuple[int, int]]]:
    """Split pairs round-robin into `n_workers` lists: pair `i` goes to list `i % n_workers`.

    Args:
        pairs (Sequence[tuple[int, int]]): Pairs in generation order.
        n_workers (int): Number of workers; must be positive.

    Returns:
        list[list[tuple[int, int]]]: Exactly `n_workers` lists, some possibly empty.

    Raises:
        ValueError: If `n_workers` is not positive.

    Examples:
        >>> partition_pairs([(0, 1), (0, 2), (1, 2)], 2)
        [[(0, 1), (1, 2)], [(0, 2)]]
    """
    if n_workers < 1:
        raise ValueError(f"n_workers must be a positive integer, got {n_workers}")
    partitions: list[list[tuple[int, int]]] = [[] for _ in range(n_workers)]
    for position, pair in enumerate(pairs):
        partitions[position % n_workers].append(pair)
    return partitions


def sort_scored_pairs(scored: Iterable[ScoredPair]) -> list[ScoredPair]:
    """Sort scored pairs by ascending weight, breaking ties by `(f1, f2)`.

    Args:
        scored (Iterable[ScoredPair]): Scored pairs in any order.

    Returns:
        list[ScoredPair]: Strongest interactions first.
    """
    return sorted(scored, key=lambda pair: (pair.weight, pair.f1, pair.f2))


# ---------------------------------------------------------------------------
# Public interface -- Ranking run
# ---------------------------------------------------------------------------


def rank_interactions(
    dataset: Dataset,
    *,
    n_workers: int = 1,
    on_progress: ProgressCallback | None = None,
) -> list[ScoredPair]:
    """Score every attribute pair of `dataset` with FAST and rank them.

    Pairs are dealt round-robin to `n_workers` threads; each thread builds the
    cumulative histograms its own pairs need and scores them independently.
    The run is all-or-nothing: if any worker fails no ranking is returned.

    Args:
        dataset (Dataset): The dataset view with residual targets populated.
        n_workers (int): Number of worker threads. Defaults to 1.
        on_progress (ProgressCallback | None): Optional callback invoked at
            each `RankingPhase` checkpoint. Worker-level checkpoints are
            delivered on worker threads.

    Returns:
        list[ScoredPair]: Every pair exactly once, ascending by weight.

    Raises:
        ValueError: If `n_workers` is not positive.
        AttributeTypeError: If any attribute is neither binned nor nominal;
            raised before scoring begins.
        ScoringWorkerError: If any worker fails.
    """
    if n_workers < 1:
        raise ValueError(f"n_workers must be a positive integer, got {n_workers}")
    dataset.attribute_sizes()

    started_at = time.perf_counter()
    pairs = generate_pairs(dataset.n_attributes)
    partitions = partition_pairs(pairs, n_workers)
    report_progress(on_progress, RankingPhase.PAIRS_GENERATED, pair_count=len(pairs), started_at=started_at)

    report_progress(
        on_progress,
        RankingPhase.SCORING_STARTED,
        pair_count=len(pairs),
        started_at=started_at,
        n_workers=n_workers,
    )
    try:
        results = Parallel(n_jobs=n_workers, prefer="threads")(
            delayed(_run_worker)(dataset, partition, worker, on_progress, started_at)
            for worker, partition in enumerate(partitions)
        )
    except ScoringWorkerError as exc:
        logger.error("Ranking aborted", worker=exc.worker, pair_count=len(pairs), reason=str(exc.__cause__))
        exc.pair_count = len(pairs)
        raise

    scored = [pair for worker_result in results for pair in worker_result]
    if len(scored) != len(pairs):
        raise ScoringWorkerError(
            f"Workers returned {len(scored)} scored pairs for {len(pairs)} pairs",
            pair_count=len(pairs),
        )
    report_progress(on_progress, RankingPhase.SCORING_FINISHED, pair_count=len(pairs), started_at=started_at)

    ranked = sort_scored_pairs(scored)
    report_progress(on_progress, RankingPhase.RANKING_SORTED, pair_count=len(ranked), started_at=started_at)
    return ranked


def ranking_to_frame(ranked: Sequence[ScoredPair], attribute_names: Sequence[str] | None = None) -> pl.DataFrame:
    """Convert a ranking into a DataFrame.

    Args:
        ranked (Sequence[ScoredPair]): Scored pairs, usually from `rank_interactions`.
        attribute_names (Sequence[str] | None): Optional names indexed by
            attribute index; adds `name1` and `name2` columns.

    Returns:
        pl.DataFrame: Columns `f1`, `f2`, (`name1`, `name2`,) `weight`, in
            the order of `ranked`.
    """
    columns: dict[str, list[int] | list[str] | list[float]] = {
        "f1": [pair.f1 for pair in ranked],
        "f2": [pair.f2 for pair in ranked],
    }
    schema: dict[str, type[pl.DataType]] = {"f1": pl.Int64, "f2": pl.Int64}
    if attribute_names is not None:
        columns["name1"] = [attribute_names[pair.f1] for pair in ranked]
        columns["name2"] = [attribute_names[pair.f2] for pair in ranked]
        schema |= {"name1": pl.String, "name2": pl.String}
    columns["weight"] = [pair.weight for pair in ranked]
    schema["weight"] = pl.Float64
    return pl.DataFrame(columns, schema=schema)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _run_worker(
    dataset: Dataset,
    pairs: list[tuple[int, int]],
    worker: int,
    on_progress: ProgressCallback | None,
    started_at: float,
) -> list[ScoredPair]:
    """Score one worker's partition, tagging any failure with the worker index.

    Args:
        dataset (Dataset): The shared, read-only dataset view.
        pairs (list[tuple[int, int]]): This worker's pairs.
        worker (int): Worker index.
        on_progress (ProgressCallback | None): Optional checkpoint callback.
        started_at (float): `time.perf_counter()` value at run start.

    Returns:
        list[ScoredPair]: The worker's scored pairs.

    Raises:
        ScoringWorkerError: Wrapping whatever exception stopped the worker.
    """
    logger.debug("Worker started", worker=worker, pair_count=len(pairs))
    try:
        return score_pairs(dataset, pairs, worker=worker, on_progress=on_progress, started_at=started_at)
    except Exception as exc:
        raise ScoringWorkerError(f"Worker {worker} failed: {exc}", worker=worker) from exc
