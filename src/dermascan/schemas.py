"""Pydantic output schemas for the DermaScan command line."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from dermascan.labels import DISCLAIMER

if TYPE_CHECKING:
    from dermascan.ml.ranker import PredictionResult


class PredictionResponse(BaseModel):
    """A rendered prediction for one captured image."""

    label: str
    confidence: float = Field(ge=0.0, le=100.0, description="Confidence percentage (0-100)")
    description: str
    degraded: bool = Field(description="True when produced by the fallback model or a synthetic vector")
    model: str = Field(description="Model kind: 'graph' or 'fallback'")
    disclaimer: str = DISCLAIMER

    @classmethod
    def from_result(cls, result: PredictionResult) -> PredictionResponse:
        return cls(
            label=result.label,
            confidence=result.confidence,
            description=result.description,
            degraded=result.degraded,
            model=str(result.model_kind),
        )


class LabelInfo(BaseModel):
    """One entry of the label set."""

    index: int
    name: str
    description: str


class LabelsResponse(BaseModel):
    """The full ordered label set."""

    labels: list[LabelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(description="Error type, e.g. 'AcquisitionError'")
    detail: str
