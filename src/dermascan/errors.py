"""Exception hierarchy for the classification pipeline.

Acquisition and preprocessing failures end the current capture and are
shown to the user. Model-load and inference-output failures are absorbed
by the stage that raised them and replaced by a degraded fallback.
"""

from __future__ import annotations


class DermascanError(Exception):
    """Base class for all pipeline errors."""


class AcquisitionError(DermascanError):
    """No image handle was supplied, or it does not point at a readable file."""


class PreprocessingError(DermascanError):
    """The captured image could not be resized or decoded."""


class ModelLoadError(DermascanError):
    """The bundled graph model could not be loaded."""


class InferenceDegradation(DermascanError):
    """The forward pass failed or returned an unusable probability vector."""


class FatalPredictionError(DermascanError):
    """Any other failure while running the pipeline."""
