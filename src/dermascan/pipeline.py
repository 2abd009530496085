"""Classification pipeline: captured image in, labelled prediction out.

    CapturedImage -> JpegPreprocessor -> InferenceEngine(model) -> rank()

The model is loaded once per pipeline and reused by every sequential call.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from dermascan.errors import DermascanError, FatalPredictionError
from dermascan.labels import LABELS
from dermascan.ml.executor import InferencePool
from dermascan.ml.inference import InferenceEngine
from dermascan.ml.model_loader import BundledModelLoader
from dermascan.ml.preprocessing import CapturedImage, JpegPreprocessor
from dermascan.ml.ranker import PredictionResult, rank
from dermascan.ml.tensors import TensorScope

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path

    from dermascan.config import Settings
    from dermascan.ml.classifier import ClassifierModel
    from dermascan.ml.inference import ProbabilityVector
    from dermascan.ml.model_loader import ModelLoader
    from dermascan.ml.preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)


@contextmanager
def _fatal_on_unexpected() -> Iterator[None]:
    try:
        yield
    except DermascanError:
        raise
    except Exception as exc:
        raise FatalPredictionError(f"Error during image analysis: {exc}") from exc


class ClassificationPipeline:
    """Runs the full inference pipeline for one session."""

    def __init__(
        self,
        settings: Settings,
        *,
        loader: ModelLoader | None = None,
        preprocessor: ImagePreprocessor | None = None,
        engine: InferenceEngine | None = None,
        labels: Sequence[str] = LABELS,
    ) -> None:
        self._settings = settings
        self._labels = tuple(labels)
        self._loader = loader if loader is not None else BundledModelLoader(settings, self._labels)
        self._preprocessor = preprocessor if preprocessor is not None else JpegPreprocessor(settings)
        self._engine = engine if engine is not None else InferenceEngine(len(self._labels), settings.degraded_seed)
        self._pool: InferencePool | None = None

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def load_model(self) -> ClassifierModel:
        """Load (or return the already loaded) session model."""
        return self._loader.load()

    def classify(self, handle: str | Path | CapturedImage | None) -> PredictionResult:
        """Classify one captured image.

        Raises:
            AcquisitionError: If no image handle is given or it cannot be read.
            PreprocessingError: If the image cannot be resized or decoded.
            FatalPredictionError: On any other failure.
        """
        image = CapturedImage.from_handle(handle)

        with _fatal_on_unexpected():
            model = self.load_model()
            with TensorScope() as scope:
                tensor = self._preprocessor.preprocess(image, scope)
                logger.info("Image processed, running model prediction...")
                vector = self._engine.run(model, tensor, scope)
                del tensor
            return self._finish(vector, model)

    async def aclassify(self, handle: str | Path | CapturedImage | None) -> PredictionResult:
        """Async variant of classify(); slow stages run on the inference pool."""
        image = CapturedImage.from_handle(handle)
        pool = self._get_pool()

        with _fatal_on_unexpected():
            model = await pool.run(self.load_model)
            with TensorScope() as scope:
                tensor = await pool.run(self._preprocessor.preprocess, image, scope)
                logger.info("Image processed, running model prediction...")
                vector = await pool.run(self._engine.run, model, tensor, scope)
                del tensor
            return self._finish(vector, model)

    def close(self) -> None:
        """Release the inference pool, if one was started."""
        if self._pool is not None:
            self._pool.shutdown()
            self._pool = None

    def _get_pool(self) -> InferencePool:
        if self._pool is None:
            self._pool = InferencePool(self._settings)
        return self._pool

    def _finish(self, vector: ProbabilityVector, model: ClassifierModel) -> PredictionResult:
        result = rank(vector, self._labels, model.kind)
        if result.degraded:
            logger.warning(
                "Degraded prediction (model=%s, synthetic=%s): %s %.2f%%",
                model.kind,
                vector.synthetic,
                result.label,
                result.confidence,
            )
        else:
            logger.info("Prediction complete: %s %.2f%%", result.label, result.confidence)
        return result
