"""Model loader: bundled graph model first, synthetic fallback second.

Handles optional asset download from HuggingFace, shard validation,
creating the ONNX Runtime InferenceSession, and building the fallback
classifier when any of that fails.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import numpy as np
import onnx
from huggingface_hub import hf_hub_download
from onnx.external_data_helper import ExternalDataInfo, uses_external_data
from onnxruntime import ExecutionMode, InferenceSession, SessionOptions

from dermascan.errors import ModelLoadError
from dermascan.labels import LABELS
from dermascan.ml.classifier import FallbackModel, GraphModel
from dermascan.ml.fallback import build_fallback_graph

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dermascan.config import Settings
    from dermascan.ml.classifier import ClassifierModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelLoader(Protocol):
    """Protocol for producing the session's classifier."""

    def load(self) -> ClassifierModel:
        """Return the loaded model, building it on first call."""
        ...


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class BundledModelLoader:
    """Loads the bundled ONNX graph once and falls back to a synthetic model on failure."""

    def __init__(self, settings: Settings, labels: Sequence[str] = LABELS) -> None:
        self._settings = settings
        self._labels = tuple(labels)
        self._model_dir = Path(settings.model_dir)

        self._lock = threading.Lock()
        self._model: ClassifierModel | None = None

        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def topology_path(self) -> Path:
        return self._model_dir / self._settings.topology_file

    @property
    def shard_paths(self) -> list[Path]:
        return [self._model_dir / name for name in self._settings.weight_shards]

    @property
    def loaded(self) -> ClassifierModel | None:
        """The model built by a previous load(), if any."""
        return self._model

    def load(self) -> ClassifierModel:
        """Return the session model, loading the graph or building the fallback once."""
        with self._lock:
            if self._model is not None:
                return self._model

            try:
                model: ClassifierModel = self.load_graph()
            except ModelLoadError as exc:
                logger.warning("Failed to load bundled model, falling back to demo model: %s", exc)
                model = self.build_fallback()

            self._model = model
            return model

    def ensure_assets(self) -> None:
        """Download missing topology/shard files when a HuggingFace repo is configured."""
        repo_id = self._settings.model_repo_id
        if repo_id is None:
            return

        names = [self._settings.topology_file, *self._settings.weight_shards]
        for name in names:
            if (self._model_dir / name).exists():
                continue
            self._model_dir.mkdir(parents=True, exist_ok=True)
            downloaded = hf_hub_download(
                repo_id=repo_id,
                filename=name,
                local_dir=str(self._model_dir),
            )
            logger.info("Downloaded %s to %s", name, downloaded)

    def load_graph(self) -> GraphModel:
        """Load the bundled graph model.

        Raises:
            ModelLoadError: If any asset is missing, corrupt, or inconsistent.
        """
        try:
            self.ensure_assets()
        except Exception as exc:
            raise ModelLoadError(f"Could not download model assets: {exc}") from exc

        topology = self.topology_path
        missing = [str(p) for p in [topology, *self.shard_paths] if not p.is_file()]
        if missing:
            raise ModelLoadError(f"Missing model assets: {', '.join(missing)}")

        self._check_shard_references(topology)

        try:
            session = InferenceSession(
                str(topology),
                sess_options=self._session_options,
                providers=["CPUExecutionProvider"],
            )
        except Exception as exc:
            raise ModelLoadError(f"Could not create session for {topology}: {exc}") from exc

        self._check_signature(session)
        self._check_probabilities(session)
        logger.info("Real model loaded successfully from %s", topology)
        return GraphModel(session, model_name=topology.stem)

    def build_fallback(self) -> FallbackModel:
        """Build the untrained fallback classifier."""
        logger.info("Creating demo model as fallback")
        graph = build_fallback_graph(
            num_classes=len(self._labels),
            input_size=self._settings.input_size,
            seed=self._settings.fallback_seed,
        )
        session = InferenceSession(
            graph.SerializeToString(),
            sess_options=self._session_options,
            providers=["CPUExecutionProvider"],
        )
        return FallbackModel(session, model_name="fallback")

    # -- Internal -----------------------------------------------------------

    def _check_shard_references(self, topology: Path) -> None:
        try:
            proto = onnx.load(str(topology), load_external_data=False)
        except Exception as exc:
            raise ModelLoadError(f"Corrupt topology {topology}: {exc}") from exc

        allowed = set(self._settings.weight_shards)
        for tensor in proto.graph.initializer:
            if not uses_external_data(tensor):
                continue
            location = ExternalDataInfo(tensor).location
            if location not in allowed:
                raise ModelLoadError(f"Initializer '{tensor.name}' references unknown shard '{location}'")

    def _check_signature(self, session: InferenceSession) -> None:
        size = self._settings.input_size
        input_shape = list(session.get_inputs()[0].shape)
        expected = [size, size, 3]
        # Symbolic (non-int) dimensions are accepted as dynamic
        if len(input_shape) != 4 or any(
            isinstance(dim, int) and dim != want for dim, want in zip(input_shape[1:], expected, strict=True)
        ):
            raise ModelLoadError(f"Model input shape {input_shape} does not match [*, {size}, {size}, 3]")

        output_shape = list(session.get_outputs()[0].shape)
        width = output_shape[-1] if output_shape else None
        if isinstance(width, int) and width != len(self._labels):
            raise ModelLoadError(f"Model output width {width} does not match {len(self._labels)} labels")

    def _check_probabilities(self, session: InferenceSession) -> None:
        # A blank input must still yield a distribution summing to 1
        size = self._settings.input_size
        zeros = np.zeros((1, size, size, 3), dtype=np.float32)
        try:
            output = session.run(None, {session.get_inputs()[0].name: zeros})[0]
        except Exception as exc:
            raise ModelLoadError(f"Forward pass on a blank input failed: {exc}") from exc

        flat = np.asarray(output, dtype=np.float64).ravel()
        if (
            flat.size != len(self._labels)
            or not np.all(np.isfinite(flat))
            or flat.min() < 0.0
            or flat.max() > 1.0
            or not np.isclose(flat.sum(), 1.0, atol=1e-3)
        ):
            raise ModelLoadError("Model output is not a probability distribution over the labels")

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True
        return opts
