"""Per-invocation tensor scope.

Every array created while handling one capture (decoded image, normalized
tensor, batched tensor, raw model output) is registered with a scope. On
exit the scope drops its references; once callers have dropped theirs too,
the buffers are freed whether the body returned or raised.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from types import TracebackType

    import numpy as np
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

A = TypeVar("A", bound="NDArray[np.generic]")


class TensorScope:
    """Context manager that owns the arrays of a single pipeline invocation."""

    def __init__(self) -> None:
        self._tensors: list[NDArray[np.generic]] = []
        self._closed = False

    def track(self, tensor: A) -> A:
        """Register an array with this scope and return it unchanged."""
        if self._closed:
            raise RuntimeError("TensorScope is already closed")
        self._tensors.append(tensor)
        return tensor

    def release(self) -> None:
        """Drop every tracked array. Safe to call more than once."""
        if self._tensors:
            logger.debug("Releasing %d tensors", len(self._tensors))
        self._tensors.clear()
        self._closed = True

    def __enter__(self) -> TensorScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
