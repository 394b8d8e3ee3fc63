"""fastinteract: histogram-based ranking of pairwise attribute interactions (FAST)."""

from loguru import logger

from fastinteract.dataset import MISSING_BIN, Dataset
from fastinteract.logging import PACKAGE_NAME, enable_logging
from fastinteract.models import BinnedAttribute, NominalAttribute, ProgressEvent, RankingPhase, ScoredPair
from fastinteract.ranking import rank_interactions

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the fastinteract package by default

__all__ = [
    "MISSING_BIN",
    "BinnedAttribute",
    "Dataset",
    "NominalAttribute",
    "ProgressEvent",
    "RankingPhase",
    "ScoredPair",
    "enable_logging",
    "rank_interactions",
]
