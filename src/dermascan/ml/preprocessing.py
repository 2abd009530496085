"""Image preprocessing: captured photo to a batched model input tensor.

Pipeline: resize to input_size x input_size (bilinear), re-encode as JPEG,
read the encoded bytes back, decode to an HxWx3 uint8 array, scale to
[0, 1] and add a leading batch dimension.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol
from urllib.parse import unquote, urlparse

import numpy as np
from PIL import Image

from dermascan.errors import AcquisitionError, PreprocessingError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from dermascan.config import Settings
    from dermascan.ml.tensors import TensorScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapturedImage:
    """Handle to a captured image on local storage."""

    path: Path

    @classmethod
    def from_handle(cls, handle: str | Path | CapturedImage | None) -> CapturedImage:
        """Build a CapturedImage from a path, a file:// URI or an existing handle.

        Raises:
            AcquisitionError: If no handle is given or it is not a readable file.
        """
        if isinstance(handle, CapturedImage):
            return handle
        if handle is None or (isinstance(handle, str) and not handle.strip()):
            raise AcquisitionError("No image found")

        if isinstance(handle, str) and handle.startswith("file://"):
            path = Path(unquote(urlparse(handle).path))
        else:
            path = Path(handle)

        if not path.is_file():
            raise AcquisitionError(f"Failed to load image: {path}")
        return cls(path=path)


class ImagePreprocessor(Protocol):
    """Protocol for image preprocessing."""

    def preprocess(self, image: CapturedImage, scope: TensorScope) -> NDArray[np.float32]:
        """Turn a captured image into a [1, H, W, 3] float32 tensor in [0, 1]."""
        ...


class JpegPreprocessor:
    """Pillow-based preprocessor producing NHWC float32 tensors."""

    def __init__(self, settings: Settings) -> None:
        self._size = settings.input_size
        self._quality = settings.jpeg_quality

    @property
    def input_shape(self) -> tuple[int, int, int, int]:
        return (1, self._size, self._size, 3)

    def resize(self, image: CapturedImage) -> bytes:
        """Resize the captured image and return it re-encoded as JPEG bytes."""
        buffer = io.BytesIO()
        with Image.open(image.path) as source:
            resized = source.convert("RGB").resize(
                (self._size, self._size),
                resample=Image.Resampling.BILINEAR,
            )
        resized.save(buffer, format="JPEG", quality=self._quality)
        return buffer.getvalue()

    def decode(self, jpeg_bytes: bytes, scope: TensorScope) -> NDArray[np.uint8]:
        """Decode JPEG bytes into an HxWx3 uint8 array."""
        with Image.open(io.BytesIO(jpeg_bytes)) as decoded:
            pixels = np.asarray(decoded.convert("RGB"), dtype=np.uint8)
        return scope.track(pixels)

    def normalize(self, pixels: NDArray[np.uint8], scope: TensorScope) -> NDArray[np.float32]:
        """Scale pixels to [0, 1] and add the batch dimension."""
        normalized = scope.track(pixels.astype(np.float32) / np.float32(255.0))
        return scope.track(normalized.reshape(self.input_shape))

    def preprocess(self, image: CapturedImage, scope: TensorScope) -> NDArray[np.float32]:
        """Run resize, decode and normalize for one captured image.

        Raises:
            PreprocessingError: On any I/O, decode or shape error.
        """
        try:
            jpeg_bytes = self.resize(image)
            pixels = self.decode(jpeg_bytes, scope)
            tensor = self.normalize(pixels, scope)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise PreprocessingError(f"Error during image analysis: {exc}") from exc

        logger.debug("Preprocessed %s to tensor %s", image.path, tensor.shape)
        return tensor
