"""Demonstrates how to enable logging and follow a ranking run in fastinteract.

fastinteract logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, fastinteract logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``PROGRESS`` level
  (numeric value 25, between INFO and WARNING) surfaces run checkpoints
  (pairs generated, per-worker histograms, scoring finished) and is the default.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module, line number and worker thread name.
- ``on_progress``: the same checkpoints are delivered as ``ProgressEvent`` objects.
- Automatic cleanup: logging is re-disabled when the context manager exits.
"""

import numpy as np
import polars as pl

from fastinteract import Dataset, ProgressEvent, enable_logging, rank_interactions
from fastinteract.ranking import ranking_to_frame

rng = np.random.default_rng(7)
n_rows = 2_000

# Already-binned columns, as produced by an upstream discretizer
df = pl.DataFrame({
    "age_bin": rng.integers(0, 8, n_rows),
    "income_bin": rng.integers(0, 16, n_rows),
    "tenure_bin": rng.integers(0, 4, n_rows),
    "plan": rng.choice(["basic", "plus", "pro"], n_rows),
    "region": rng.choice(["north", "south", "east", "west"], n_rows),
})

# Residuals of an additive model that missed an age x plan interaction
residuals = np.where((df["age_bin"] > 5).to_numpy() & (df["plan"] == "pro").to_numpy(), 3.0, 0.0)
residuals = residuals + rng.normal(0.0, 1.0, n_rows)

dataset = Dataset.from_polars(df).with_target(residuals)


def print_event(event: ProgressEvent) -> None:
    """Print worker-level checkpoints delivered to the callback."""
    if event.worker is not None:
        print(f"worker {event.worker}: {event.phase} ({event.pair_count} pairs, {event.elapsed_seconds:.3f}s)")


# Enable logging at PROGRESS level (and above) with the full format to see worker thread names
with enable_logging(level="PROGRESS", log_format="full"):
    ranked = rank_interactions(dataset, n_workers=4, on_progress=print_event)

# Logging automatically disabled here
print(ranking_to_frame(ranked, attribute_names=dataset.attribute_names).head(5))
