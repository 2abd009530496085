"""Inference engine: forward pass and probability-vector extraction.

If the forward pass raises or the output is not exactly one finite value
per label, a uniform-random vector of the right length is substituted and
marked synthetic so the result can be reported as degraded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from dermascan.errors import InferenceDegradation

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from dermascan.ml.classifier import ClassifierModel
    from dermascan.ml.tensors import TensorScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbabilityVector:
    """One value per label, index-aligned with the label set."""

    values: tuple[float, ...]
    synthetic: bool = False

    def __len__(self) -> int:
        return len(self.values)


class InferenceEngine:
    """Runs a classifier on a preprocessed tensor and extracts its probabilities."""

    def __init__(self, num_classes: int, seed: int | None = None) -> None:
        self._num_classes = num_classes
        self._rng = np.random.default_rng(seed)

    @property
    def num_classes(self) -> int:
        return self._num_classes

    def run(
        self,
        model: ClassifierModel,
        tensor: NDArray[np.float32],
        scope: TensorScope,
    ) -> ProbabilityVector:
        """Forward pass plus extraction; never returns a vector of the wrong length."""
        try:
            raw = scope.track(model.predict(tensor))
            values = self.extract(raw)
        except InferenceDegradation as exc:
            logger.warning("Error getting prediction data, using demo result: %s", exc)
            return self.synthetic_vector()
        except Exception as exc:
            logger.warning("Forward pass failed on %s, using demo result: %s", model.model_name, exc)
            return self.synthetic_vector()

        return ProbabilityVector(values=values)

    def extract(self, raw: object) -> tuple[float, ...]:
        """Flatten raw model output into exactly num_classes probabilities.

        Raises:
            InferenceDegradation: If the output is missing, the wrong size, or out of range.
        """
        if raw is None:
            raise InferenceDegradation("Model returned no output")
        try:
            flat = np.asarray(raw, dtype=np.float64).ravel()
        except (TypeError, ValueError) as exc:
            raise InferenceDegradation(f"Output is not numeric: {exc}") from exc

        if flat.size != self._num_classes:
            raise InferenceDegradation(f"Expected {self._num_classes} values, got {flat.size}")
        if not np.all(np.isfinite(flat)):
            raise InferenceDegradation("Output contains non-finite values")
        if flat.min() < 0.0 or flat.max() > 1.0:
            raise InferenceDegradation("Output values are not probabilities in [0, 1]")
        return tuple(float(v) for v in flat)

    def synthetic_vector(self) -> ProbabilityVector:
        """Uniform-random values in [0, 1), one per label."""
        values = self._rng.random(self._num_classes)
        return ProbabilityVector(values=tuple(float(v) for v in values), synthetic=True)
