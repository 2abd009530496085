"""Result ranking: top class and confidence percentage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dermascan.labels import LABELS, describe
from dermascan.ml.classifier import ModelKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dermascan.ml.inference import ProbabilityVector


@dataclass(frozen=True)
class PredictionResult:
    """The top prediction for one captured image."""

    label: str
    confidence: float
    degraded: bool = False
    model_kind: ModelKind = ModelKind.GRAPH

    @property
    def description(self) -> str:
        return describe(self.label)


def top_index(values: Sequence[float]) -> tuple[int, float]:
    """Return (index, value) of the first maximum.

    The running maximum starts at 0 and only a strictly greater value
    replaces it, so ties go to the earliest index and an all-non-positive
    vector resolves to index 0 with value 0.
    """
    max_value = 0.0
    max_index = 0
    for index, value in enumerate(values):
        if value > max_value:
            max_value = value
            max_index = index
    return max_index, max_value


def rank(
    vector: ProbabilityVector,
    labels: Sequence[str] = LABELS,
    model_kind: ModelKind = ModelKind.GRAPH,
) -> PredictionResult:
    """Turn a probability vector into a labelled prediction."""
    if len(vector) != len(labels):
        raise ValueError(f"Vector length {len(vector)} does not match {len(labels)} labels")

    index, value = top_index(vector.values)
    return PredictionResult(
        label=labels[index],
        confidence=value * 100,
        degraded=vector.synthetic or model_kind is ModelKind.FALLBACK,
        model_kind=model_kind,
    )
