"""Shared fixtures: sample images and a bundled model on disk."""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from dermascan.config import Settings
from dermascan.labels import LABELS
from dermascan.ml.bundle import write_bundle
from dermascan.ml.fallback import build_fallback_graph

if TYPE_CHECKING:
    from pathlib import Path

TOPOLOGY = "model.onnx"
SHARDS = ("group1-shard1of3.bin", "group1-shard2of3.bin", "group1-shard3of3.bin")


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "model_dir": "/tmp/dermascan_test_models_missing",
        "topology_file": TOPOLOGY,
        "weight_shards": SHARDS,
        "model_repo_id": None,
        "input_size": 224,
        "max_concurrent": 1,
        "fallback_seed": 7,
        "degraded_seed": 11,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


@pytest.fixture(scope="session")
def bundle_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """A valid bundle (topology + three shards) built from a seeded network."""
    directory = tmp_path_factory.mktemp("bundle")
    model = build_fallback_graph(num_classes=len(LABELS), seed=0)
    write_bundle(model, directory, TOPOLOGY, SHARDS)
    return directory


@pytest.fixture()
def bundle_copy(bundle_dir: Path, tmp_path: Path) -> Path:
    """A private copy of the bundle that a test may damage."""
    target = tmp_path / "models"
    shutil.copytree(bundle_dir, target)
    return target


@pytest.fixture()
def red_pixel_jpeg(tmp_path: Path) -> Path:
    path = tmp_path / "red.jpg"
    Image.new("RGB", (1, 1), (255, 0, 0)).save(path, format="JPEG")
    return path


@pytest.fixture()
def noise_jpeg(tmp_path: Path) -> Path:
    rng = np.random.default_rng(3)
    pixels = rng.integers(0, 256, size=(224, 224, 3), dtype=np.uint8)
    path = tmp_path / "noise.jpg"
    Image.fromarray(pixels).save(path, format="JPEG")
    return path


@pytest.fixture()
def corrupt_jpeg(tmp_path: Path) -> Path:
    path = tmp_path / "corrupt.jpg"
    path.write_bytes(b"this is not a jpeg")
    return path
