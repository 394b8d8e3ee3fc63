"""Custom exceptions for fastinteract.

This module defines the exceptions raised while validating inputs and scoring
attribute pairs:

- FastInteractError: Base class for every fastinteract failure. Catch this to
  abort a ranking run on any error.
- AttributeTypeError: Raised when an attribute is neither binned nor nominal,
  so no histogram can be built for it.
- DatasetValidationError: Raised when the dataset arrays are inconsistent
  (shapes, bin ranges, weights, non-finite targets).
- UnbinnedAttributeError: Raised when a column would need discretization
  before it can be scored.
- ResidualCountError: Raised when the number of residuals does not match the
  number of instances.
- ScoringWorkerError: Raised when a scoring worker fails; the original
  exception is chained as ``__cause__``.
"""

from __future__ import annotations


class FastInteractError(Exception):
    """Base exception for all fastinteract errors.

    A ranking run is all-or-nothing: catching this exception is enough to
    detect that no ranking was produced.
    """


class AttributeTypeError(TypeError, FastInteractError):
    """Raised when an attribute is neither binned nor nominal.

    Attributes:
        attribute (object): The offending attribute object.

    Examples:
        >>> err = AttributeTypeError(attribute="not-an-attribute")
        >>> err.attribute
        'not-an-attribute'
    """

    attribute: object

    def __init__(self, attribute: object) -> None:
        """Initialize AttributeTypeError.

        Args:
            attribute (object): The attribute whose type is not supported.
        """
        super().__init__(
            f"Unsupported attribute type {type(attribute).__name__!r}: expected a binned or nominal attribute"
        )
        self.attribute = attribute


class DatasetValidationError(ValueError, FastInteractError):
    """Raised when dataset arrays or attribute metadata are inconsistent."""


class UnbinnedAttributeError(DatasetValidationError):
    """Raised when a column holds values that are not valid bin indices.

    Binning is done upstream; fastinteract never chooses bin boundaries.

    Attributes:
        column (str): Name of the offending column.
        reason (str): Human-readable explanation.

    Examples:
        >>> err = UnbinnedAttributeError(column="income", reason="non-integral float values")
        >>> str(err)
        "Column 'income' is not binned: non-integral float values"
    """

    column: str
    reason: str

    def __init__(self, column: str, reason: str) -> None:
        """Initialize UnbinnedAttributeError.

        Args:
            column (str): Name of the column that is not binned.
            reason (str): Why the column cannot be used as bin indices.
        """
        super().__init__(f"Column {column!r} is not binned: {reason}")
        self.column = column
        self.reason = reason


class ResidualCountError(DatasetValidationError):
    """Raised when the residual count differs from the instance count.

    Attributes:
        expected (int): Number of instances in the dataset.
        actual (int): Number of residual values supplied.

    Examples:
        >>> err = ResidualCountError(expected=10, actual=9)
        >>> (err.expected, err.actual)
        (10, 9)
    """

    expected: int
    actual: int

    def __init__(self, expected: int, actual: int) -> None:
        """Initialize ResidualCountError.

        Args:
            expected (int): Number of instances in the dataset.
            actual (int): Number of residual values supplied.
        """
        super().__init__(f"Expected {expected} residual values (one per instance), got {actual}")
        self.expected = expected
        self.actual = actual


class ScoringWorkerError(RuntimeError, FastInteractError):
    """Raised when a scoring worker cannot complete its pairs.

    Attributes:
        worker (int | None): Index of the failing worker, when known.
        pair_count (int): Total number of pairs in the aborted run.
    """

    worker: int | None
    pair_count: int

    def __init__(self, message: str, *, worker: int | None = None, pair_count: int = 0) -> None:
        """Initialize ScoringWorkerError.

        Args:
            message (str): Human-readable description of the failure.
            worker (int | None): Index of the failing worker, when known.
            pair_count (int): Total number of pairs in the aborted run.
        """
        super().__init__(message)
        self.worker = worker
        self.pair_count = pair_count
