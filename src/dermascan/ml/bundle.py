"""Write an ONNX classifier into the bundled asset layout.

The layout is one topology file whose initializers are stored as ONNX
external data, spread across a fixed set of weight-shard files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import onnx
from onnx import numpy_helper
from onnx.external_data_helper import set_external_data, uses_external_data

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def assign_shards(model: onnx.ModelProto, shard_names: Sequence[str]) -> dict[str, str]:
    """Map each initializer name to a shard, largest tensors first onto the lightest shard."""
    totals = dict.fromkeys(shard_names, 0)
    assignment: dict[str, str] = {}
    tensors = sorted(model.graph.initializer, key=lambda t: len(t.raw_data), reverse=True)
    for tensor in tensors:
        shard = min(shard_names, key=lambda name: totals[name])
        assignment[tensor.name] = shard
        totals[shard] += len(tensor.raw_data)
    return assignment


def write_bundle(
    model: onnx.ModelProto,
    directory: str | Path,
    topology_file: str,
    shard_names: Sequence[str],
) -> Path:
    """Save ``model`` as ``topology_file`` plus ``shard_names`` inside ``directory``.

    Returns:
        Path of the written topology file.

    Raises:
        FileExistsError: If the topology or any shard already exists.
    """
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    targets = [out_dir / topology_file, *(out_dir / name for name in shard_names)]
    existing = [str(p) for p in targets if p.exists()]
    if existing:
        raise FileExistsError(f"Refusing to overwrite bundle files: {', '.join(existing)}")

    bundled = onnx.ModelProto()
    bundled.CopyFrom(model)

    for tensor in bundled.graph.initializer:
        if uses_external_data(tensor):
            raise ValueError(f"Initializer '{tensor.name}' already uses external data")
        if not tensor.HasField("raw_data"):
            # Typed fields (float_data, ...) are re-encoded into raw_data
            array = numpy_helper.to_array(tensor)
            tensor.CopyFrom(numpy_helper.from_array(array, name=tensor.name))

    assignment = assign_shards(bundled, shard_names)
    for tensor in bundled.graph.initializer:
        set_external_data(tensor, location=assignment[tensor.name])

    topology_path = out_dir / topology_file
    onnx.save_model(bundled, str(topology_path))

    # A shard with no tensors assigned still has to exist for the loader
    for name in shard_names:
        (out_dir / name).touch(exist_ok=True)

    logger.info("Wrote bundle %s (%d initializers, %d shards)", topology_path, len(assignment), len(shard_names))
    return topology_path
