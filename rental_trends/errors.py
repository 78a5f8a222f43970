"""
Error types raised by the case study pipeline.

Every error can carry the stage that failed and the entity (listing or file)
that triggered it, so a failed run points straight at the offending data.
"""

from typing import Optional


class CaseStudyError(Exception):
    """Base class for all pipeline errors."""

    def __init__(
        self,
        message: str,
        listing_id: Optional[int] = None,
        file: Optional[str] = None,
        stage: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.listing_id = listing_id
        self.file = file
        self.stage = stage

    def __str__(self) -> str:
        context = []
        if self.stage:
            context.append(f"stage={self.stage}")
        if self.listing_id is not None:
            context.append(f"listing_id={self.listing_id}")
        if self.file:
            context.append(f"file={self.file}")
        if context:
            return f"{self.message} [{', '.join(context)}]"
        return self.message


class LoadError(CaseStudyError):
    """A data directory could not be loaded."""


class SchemaError(LoadError):
    """A file's columns or types don't match the expected schema."""


class MissingKeyError(CaseStudyError):
    """A join key is absent from one side of a join."""


class IncompleteGroupError(CaseStudyError):
    """Not enough observations (or listings) for a stage to run."""


class NonFiniteValueError(CaseStudyError):
    """NaN or infinite value where a clustering matrix cell is required."""


class DuplicateObservationError(CaseStudyError):
    """A listing has more than one observation for the same date."""


class SeedMismatchError(CaseStudyError):
    """Two seeded clustering runs produced different partitions."""


class ModelSelectionError(CaseStudyError):
    """The chosen (k, restart) is not among the fitted models."""
