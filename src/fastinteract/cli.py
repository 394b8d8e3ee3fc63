"""Command line entry point: rank pairwise interactions of a binned dataset."""

from __future__ import annotations

import time
from pathlib import Path

import click
from loguru import logger

from fastinteract.exceptions import FastInteractError
from fastinteract.io import read_dataset, read_residuals, write_ranking
from fastinteract.logging import enable_logging
from fastinteract.ranking import rank_interactions
from fastinteract.settings import RankingSettings

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}

_LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "PROGRESS", "WARNING", "ERROR", "CRITICAL"]


def _parse_bin_counts(ctx: click.Context, param: click.Parameter, value: tuple[str, ...]) -> dict[str, int]:
    """Turn repeated `NAME=COUNT` values into a bin-count mapping."""
    bin_counts: dict[str, int] = {}
    for item in value:
        name, sep, count = item.rpartition("=")
        if not sep or not name or not count.isdigit() or int(count) < 1:
            raise click.BadParameter(f"expected NAME=COUNT with a positive COUNT, got {item!r}", ctx, param)
        bin_counts[name] = int(count)
    return bin_counts


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--dataset",
    "-d",
    "dataset_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Binned dataset (.csv, .tsv, .txt or .parquet).",
)
@click.option(
    "--residuals",
    "-R",
    "residual_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Residual file, one value per line in instance order.",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file for the ranked pairs (f1<TAB>f2<TAB>weight).",
)
@click.option(
    "--threads",
    "-p",
    "n_workers",
    type=click.IntRange(min=1),
    default=None,
    help="Number of worker threads (default: FASTINTERACT_N_WORKERS or 1).",
)
@click.option("--weight-column", default=None, help="Column holding instance weights.")
@click.option(
    "--exclude",
    "-x",
    "exclude",
    multiple=True,
    help="Column that is not an attribute, such as a label or identifier. Repeatable.",
)
@click.option(
    "--bin-count",
    "bin_counts",
    multiple=True,
    callback=_parse_bin_counts,
    metavar="NAME=COUNT",
    help="Bin count reported by the discretizer for one column. Repeatable.",
)
@click.option("--log-level", type=click.Choice(_LOG_LEVELS), default=None, help="Minimum log level.")
@click.option("--log-format", type=click.Choice(["short", "full"]), default=None, help="Log line format.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append log records to this file instead of stderr.",
)
def main(
    dataset_path: Path,
    residual_path: Path,
    output_path: Path,
    n_workers: int | None,
    weight_column: str | None,
    exclude: tuple[str, ...],
    bin_counts: dict[str, int],
    log_level: str | None,
    log_format: str | None,
    log_file: Path | None,
) -> None:
    """Rank all attribute pairs of a binned dataset by FAST interaction weight.

    The lowest weights (strongest interactions) are written first.

    Example:
        fastinteract -d train.csv -R residuals.txt -o pairs.tsv -p 4 -x label
    """
    settings = RankingSettings()
    with enable_logging(
        level=log_level or settings.log_level,  # type: ignore[arg-type]
        log_format=log_format or settings.log_format,  # type: ignore[arg-type]
        sink=log_file,
    ):
        try:
            dataset = read_dataset(
                dataset_path,
                weight_column=weight_column,
                exclude=exclude,
                bin_counts=bin_counts,
            )
            residuals = read_residuals(residual_path, expected_count=len(dataset))
            start = time.perf_counter()
            ranked = rank_interactions(dataset.with_target(residuals), n_workers=n_workers or settings.n_workers)
            elapsed = time.perf_counter() - start
            write_ranking(output_path, ranked)
        except FastInteractError as exc:
            logger.error("Ranking failed", error_type=type(exc).__name__)
            raise click.ClickException(str(exc)) from exc

    click.echo(f"Ranked {len(ranked)} pairs in {elapsed:.1f}s -> {output_path}")


if __name__ == "__main__":
    main()
