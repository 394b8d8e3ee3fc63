"""Pydantic models for attributes, scored pairs and run progress."""

from __future__ import annotations

import math
from collections.abc import Callable
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fastinteract.exceptions import AttributeTypeError

# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------


class BinnedAttribute(BaseModel):
    """A numeric attribute whose values were discretized upstream into bins.

    Attributes:
        kind (Literal["binned"]): Discriminator field; always `"binned"`.
        index (int): Position of the attribute in the dataset.
        name (str): Attribute name, e.g. `"age"`.
        bin_count (int): Number of bins; valid bin values are `0..bin_count-1`.

    Examples:
        >>> BinnedAttribute(index=0, name="age", bin_count=16).bin_count
        16
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["binned"] = Field(default="binned", description='Discriminator field. Always "binned".')
    index: int = Field(ge=0, description="Position of the attribute in the dataset.")
    name: str = Field(description="Attribute name.")
    bin_count: int = Field(ge=1, description="Number of bins produced by the upstream discretizer.")


class NominalAttribute(BaseModel):
    """A categorical attribute whose values are codes into `states`.

    Attributes:
        kind (Literal["nominal"]): Discriminator field; always `"nominal"`.
        index (int): Position of the attribute in the dataset.
        name (str): Attribute name, e.g. `"plan_type"`.
        states (tuple[str, ...]): Category labels; code `i` maps to `states[i]`.

    Examples:
        >>> NominalAttribute(index=1, name="plan", states=("basic", "pro")).cardinality
        2
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["nominal"] = Field(default="nominal", description='Discriminator field. Always "nominal".')
    index: int = Field(ge=0, description="Position of the attribute in the dataset.")
    name: str = Field(description="Attribute name.")
    states: tuple[str, ...] = Field(min_length=1, description="Category labels, ordered by code.")

    @property
    def cardinality(self) -> int:
        """Number of distinct categories."""
        return len(self.states)


type Attribute = Annotated[BinnedAttribute | NominalAttribute, Field(discriminator="kind")]


def attribute_size(attribute: object) -> int:
    """Return the number of histogram bins for an attribute.

    Args:
        attribute (object): A `BinnedAttribute` or `NominalAttribute`.

    Returns:
        int: The bin count of a binned attribute, or the cardinality of a
            nominal attribute.

    Raises:
        AttributeTypeError: If `attribute` is neither binned nor nominal.
    """
    match attribute:
        case BinnedAttribute(bin_count=bin_count):
            return bin_count
        case NominalAttribute():
            return attribute.cardinality
        case _:
            raise AttributeTypeError(attribute)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ScoredPair(BaseModel):
    """An unordered attribute pair with its FAST interaction weight.

    The weight is the minimum residual sum of squares reachable by the best
    quadrant partition of the pair; lower weights denote stronger
    interactions.

    Attributes:
        f1 (int): Index of the first attribute.
        f2 (int): Index of the second attribute; always greater than `f1`.
        weight (float): Minimum RSS found for the pair.

    Examples:
        >>> ScoredPair(f1=0, f2=3, weight=1.5)
        ScoredPair(f1=0, f2=3, weight=1.5)
    """

    model_config = ConfigDict(frozen=True)

    f1: int = Field(ge=0, description="Index of the first attribute.")
    f2: int = Field(ge=0, description="Index of the second attribute (greater than f1).")
    weight: float = Field(description="Minimum RSS over all quadrant splits; lower is a stronger interaction.")

    @model_validator(mode="after")
    def _validate_pair_order(self) -> ScoredPair:
        """Validate that the pair is stored as `f1 < f2`.

        Returns:
            ScoredPair: The validated model instance.

        Raises:
            ValueError: If `f1 >= f2`.
        """
        if self.f1 >= self.f2:
            raise ValueError(f"pair must satisfy f1 < f2, got ({self.f1}, {self.f2})")
        return self

    @field_validator("weight", mode="after")
    @classmethod
    def _validate_weight_is_finite(cls, value: float) -> float:
        """Reject NaN and infinite weights.

        Args:
            value (float): The weight to validate.

        Returns:
            float: The validated weight, unchanged.

        Raises:
            ValueError: If the weight is not finite.
        """
        if not math.isfinite(value):
            raise ValueError(f"weight must be finite, got {value}")
        return value

    @property
    def pair(self) -> tuple[int, int]:
        """The `(f1, f2)` index pair."""
        return (self.f1, self.f2)


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------


class RankingPhase(StrEnum):
    """Checkpoints reported during a ranking run.

    Attributes:
        PAIRS_GENERATED: The pair universe was generated and partitioned.
        SCORING_STARTED: Workers are about to start.
        HISTOGRAMS_BUILT: One worker finished its cumulative histograms.
        WORKER_FINISHED: One worker scored all of its pairs.
        SCORING_FINISHED: All workers joined.
        RANKING_SORTED: The combined result list was sorted.
    """

    PAIRS_GENERATED = "pairs_generated"
    SCORING_STARTED = "scoring_started"
    HISTOGRAMS_BUILT = "histograms_built"
    WORKER_FINISHED = "worker_finished"
    SCORING_FINISHED = "scoring_finished"
    RANKING_SORTED = "ranking_sorted"


class ProgressEvent(BaseModel):
    """A single run checkpoint passed to a progress callback.

    Attributes:
        phase (RankingPhase): Which checkpoint was reached.
        pair_count (int): Number of pairs concerned (whole run, or one worker's share).
        worker (int | None): Worker index for worker-level checkpoints.
        elapsed_seconds (float): Seconds since the run started.
    """

    model_config = ConfigDict(frozen=True)

    phase: RankingPhase
    pair_count: int = Field(ge=0)
    worker: int | None = None
    elapsed_seconds: float = Field(default=0.0, ge=0.0)


# Callbacks for worker-level phases run on the worker threads.
type ProgressCallback = Callable[[ProgressEvent], None]
