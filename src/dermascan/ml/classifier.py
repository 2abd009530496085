"""Classifier model interface and its two ONNX Runtime implementations.

GraphModel wraps the bundled pretrained graph. FallbackModel wraps the
untrained synthetic network built when the bundle cannot be loaded. Both
take a [1, 224, 224, 3] float32 tensor and return the raw output array.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession


class ModelKind(StrEnum):
    GRAPH = "graph"
    FALLBACK = "fallback"


class ClassifierModel(Protocol):
    """Protocol for skin-lesion classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    @property
    def kind(self) -> ModelKind:
        """Return whether this is the real graph model or the fallback."""
        ...

    def predict(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run a forward pass.

        Args:
            tensor: [1, H, W, 3] float32 array with values in [0, 1].

        Returns:
            Raw model output, expected to hold one probability per label.
        """
        ...


class _SessionModel:
    """Shared forward-pass plumbing over an InferenceSession."""

    kind: ModelKind

    def __init__(self, session: InferenceSession, model_name: str) -> None:
        self._session = session
        self._model_name = model_name
        self._input_name = session.get_inputs()[0].name

    @property
    def model_name(self) -> str:
        return self._model_name

    def predict(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        outputs = self._session.run(None, {self._input_name: tensor})
        result: NDArray[np.float32] = outputs[0]
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_name={self._model_name!r})"


class GraphModel(_SessionModel):
    """The bundled pretrained classifier (topology + weight shards)."""

    kind = ModelKind.GRAPH


class FallbackModel(_SessionModel):
    """Untrained, randomly initialized classifier used when the bundle is unavailable.

    Its predictions carry no meaning; results produced by it are flagged as degraded.
    """

    kind = ModelKind.FALLBACK
