"""Exception hierarchy for transfer_classifier.

Setup and shape errors propagate and abort the enclosing run.  Per-image
decode failures are never raised; they travel as error results instead.
"""

from __future__ import annotations


class TransferClassifierError(Exception):
    """Base class for all package errors."""


class DatasetNotFoundError(TransferClassifierError):
    """The dataset root does not exist or is not a directory."""


class ArtifactNotFoundError(TransferClassifierError):
    """A required model artifact file is missing."""


class ArtifactFormatError(TransferClassifierError):
    """A model artifact exists but cannot be interpreted by this reader."""


class BatchShapeMismatchError(TransferClassifierError):
    """Stored feature batches disagree on their non-batch dimensions."""

    def __init__(
        self,
        batch_index: int,
        expected: tuple[int, ...],
        actual: tuple[int, ...],
        kind: str = "features",
    ) -> None:
        self.batch_index = batch_index
        self.expected = expected
        self.actual = actual
        self.kind = kind
        super().__init__(
            f"{kind} batch {batch_index} has shape {actual}, "
            f"expected (*, {', '.join(str(d) for d in expected)})"
        )


class EmptyTrainingSetError(TransferClassifierError):
    """No image was successfully decoded, so there is nothing to train on."""
