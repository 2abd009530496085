"""Tests for the bundled model loader and its fallback path."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import onnx
import pytest

from conftest import SHARDS, TOPOLOGY, make_settings
from dermascan.errors import ModelLoadError
from dermascan.labels import LABELS
from dermascan.ml.bundle import write_bundle
from dermascan.ml.classifier import FallbackModel, GraphModel, ModelKind
from dermascan.ml.fallback import OUTPUT_NAME, build_fallback_graph
from dermascan.ml.model_loader import BundledModelLoader

ZERO_TENSOR = np.zeros((1, 224, 224, 3), dtype=np.float32)


def _largest_shard(directory: Path) -> Path:
    return max((directory / name for name in SHARDS), key=lambda p: p.stat().st_size)


def _logit_graph() -> onnx.ModelProto:
    """The fallback graph with its final Softmax removed, so it emits raw scores."""
    model = build_fallback_graph(num_classes=len(LABELS), seed=1)
    del model.graph.node[-1]
    model.graph.node[-1].output[0] = OUTPUT_NAME
    return model


# ---------------------------------------------------------------------------
# Real model path
# ---------------------------------------------------------------------------


class TestGraphModelLoading:
    def test_loads_bundle_as_graph_model(self, bundle_dir: Path) -> None:
        loader = BundledModelLoader(make_settings(model_dir=str(bundle_dir)))
        model = loader.load()

        assert isinstance(model, GraphModel)
        assert model.kind is ModelKind.GRAPH
        assert model.model_name == "model"

    def test_graph_model_outputs_one_value_per_label(self, bundle_dir: Path) -> None:
        model = BundledModelLoader(make_settings(model_dir=str(bundle_dir))).load()
        output = model.predict(ZERO_TENSOR)
        assert output.size == len(LABELS)
        assert np.isclose(float(output.sum()), 1.0, atol=1e-5)

    def test_load_is_cached(self, bundle_dir: Path) -> None:
        loader = BundledModelLoader(make_settings(model_dir=str(bundle_dir)))
        assert loader.loaded is None
        first = loader.load()
        second = loader.load()
        assert first is second
        assert loader.loaded is first


# ---------------------------------------------------------------------------
# Fallback path
# ---------------------------------------------------------------------------


class TestFallback:
    def test_missing_assets_fall_back(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        loader = BundledModelLoader(make_settings(model_dir=str(tmp_path / "empty")))
        with caplog.at_level(logging.WARNING, logger="dermascan.ml.model_loader"):
            model = loader.load()

        assert isinstance(model, FallbackModel)
        assert model.kind is ModelKind.FALLBACK
        assert "falling back" in caplog.text

    def test_missing_shard_falls_back(self, bundle_copy: Path) -> None:
        (bundle_copy / SHARDS[1]).unlink()
        model = BundledModelLoader(make_settings(model_dir=str(bundle_copy))).load()
        assert isinstance(model, FallbackModel)

    def test_truncated_shard_falls_back(self, bundle_copy: Path) -> None:
        _largest_shard(bundle_copy).write_bytes(b"")
        model = BundledModelLoader(make_settings(model_dir=str(bundle_copy))).load()
        assert isinstance(model, FallbackModel)

    def test_garbage_topology_falls_back(self, bundle_copy: Path) -> None:
        (bundle_copy / TOPOLOGY).write_bytes(b"\x00\xffnot a model\xff" * 8)
        model = BundledModelLoader(make_settings(model_dir=str(bundle_copy))).load()
        assert isinstance(model, FallbackModel)

    def test_wrong_output_width_falls_back(self, tmp_path: Path) -> None:
        write_bundle(build_fallback_graph(num_classes=5, seed=1), tmp_path, TOPOLOGY, SHARDS)
        model = BundledModelLoader(make_settings(model_dir=str(tmp_path))).load()
        assert isinstance(model, FallbackModel)

    def test_logit_output_falls_back(self, tmp_path: Path) -> None:
        write_bundle(_logit_graph(), tmp_path, TOPOLOGY, SHARDS)
        model = BundledModelLoader(make_settings(model_dir=str(tmp_path))).load()
        assert isinstance(model, FallbackModel)

    def test_fallback_outputs_one_value_per_label(self) -> None:
        model = BundledModelLoader(make_settings()).build_fallback()
        output = model.predict(ZERO_TENSOR)
        assert output.shape == (1, len(LABELS))
        assert np.all(output >= 0.0)
        assert np.isclose(float(output.sum()), 1.0, atol=1e-5)

    def test_fallback_seed_is_reproducible(self, noise_tensor: np.ndarray) -> None:
        first = BundledModelLoader(make_settings(fallback_seed=5)).build_fallback()
        second = BundledModelLoader(make_settings(fallback_seed=5)).build_fallback()
        assert np.allclose(first.predict(noise_tensor), second.predict(noise_tensor))


@pytest.fixture()
def noise_tensor() -> np.ndarray:
    rng = np.random.default_rng(0)
    return rng.random((1, 224, 224, 3), dtype=np.float32)


# ---------------------------------------------------------------------------
# Graph validation
# ---------------------------------------------------------------------------


class TestLoadGraph:
    def test_missing_assets_raise(self, tmp_path: Path) -> None:
        loader = BundledModelLoader(make_settings(model_dir=str(tmp_path)))
        with pytest.raises(ModelLoadError, match="Missing model assets"):
            loader.load_graph()

    def test_unknown_shard_reference_raises(self, tmp_path: Path) -> None:
        names = (SHARDS[0], SHARDS[1], "stray.bin")
        write_bundle(build_fallback_graph(num_classes=len(LABELS), seed=2), tmp_path, TOPOLOGY, names)
        (tmp_path / SHARDS[2]).touch()

        loader = BundledModelLoader(make_settings(model_dir=str(tmp_path)))
        with pytest.raises(ModelLoadError, match="unknown shard"):
            loader.load_graph()

    def test_logit_output_raises(self, tmp_path: Path) -> None:
        write_bundle(_logit_graph(), tmp_path, TOPOLOGY, SHARDS)
        loader = BundledModelLoader(make_settings(model_dir=str(tmp_path)))
        with pytest.raises(ModelLoadError, match="not a probability distribution"):
            loader.load_graph()


# ---------------------------------------------------------------------------
# HuggingFace download
# ---------------------------------------------------------------------------


class TestEnsureAssets:
    @patch("dermascan.ml.model_loader.hf_hub_download")
    def test_no_download_without_repo(self, mock_download: MagicMock, tmp_path: Path) -> None:
        loader = BundledModelLoader(make_settings(model_dir=str(tmp_path)))
        loader.ensure_assets()
        mock_download.assert_not_called()

    @patch("dermascan.ml.model_loader.hf_hub_download")
    def test_downloads_missing_assets(self, mock_download: MagicMock, bundle_dir: Path, tmp_path: Path) -> None:
        target = tmp_path / "downloaded"

        def fake_download(repo_id: str, filename: str, local_dir: str) -> str:
            dest = Path(local_dir) / filename
            shutil.copy(bundle_dir / filename, dest)
            return str(dest)

        mock_download.side_effect = fake_download
        loader = BundledModelLoader(make_settings(model_dir=str(target), model_repo_id="acme/dermascan-models"))
        model = loader.load()

        assert isinstance(model, GraphModel)
        assert mock_download.call_count == 1 + len(SHARDS)
        mock_download.assert_any_call(
            repo_id="acme/dermascan-models",
            filename=TOPOLOGY,
            local_dir=str(target),
        )

    @patch("dermascan.ml.model_loader.hf_hub_download")
    def test_skips_assets_already_present(self, mock_download: MagicMock, bundle_copy: Path) -> None:
        loader = BundledModelLoader(make_settings(model_dir=str(bundle_copy), model_repo_id="acme/dermascan-models"))
        loader.ensure_assets()
        mock_download.assert_not_called()

    @patch("dermascan.ml.model_loader.hf_hub_download")
    def test_download_failure_falls_back(self, mock_download: MagicMock, tmp_path: Path) -> None:
        mock_download.side_effect = OSError("network unreachable")
        loader = BundledModelLoader(make_settings(model_dir=str(tmp_path), model_repo_id="acme/dermascan-models"))
        model = loader.load()
        assert isinstance(model, FallbackModel)
