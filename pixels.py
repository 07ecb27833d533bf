"""
PIXEL RELAY - Pixel Buffers

RGBA pixel buffer and animation frame types shared by every operation,
plus the error taxonomy reported back to the host.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

# RGBA, 8 bits per channel
BYTES_PER_PIXEL = 4

# Largest value accepted for a u32 dimension or offset
U32_MAX = 2 ** 32 - 1


class ImageTaskError(Exception):
    """Base class for failures delivered to the host as a rejection.

    ``str(error)`` is the short rejection reason.
    """


class InvalidImage(ImageTaskError):
    """Pixel data does not match its dimensions, or no frames were supplied."""


class DecodeError(ImageTaskError):
    """Bytes are not a well-formed instance of the expected container."""


class EncodeError(ImageTaskError):
    """The encoder library failed on otherwise valid frames."""


class TaskTimeoutError(ImageTaskError):
    """A task did not settle within the configured execution bound."""


class ArgumentError(TypeError):
    """Host arguments have the wrong shape. Raised before scheduling."""


@dataclass
class PixelBuffer:
    """Row-major, non-premultiplied RGBA pixels."""
    width: int
    height: int
    data: bytes

    @property
    def byte_length(self) -> int:
        """Number of bytes the dimensions call for."""
        return self.width * self.height * BYTES_PER_PIXEL

    def is_valid(self) -> bool:
        return len(self.data) == self.byte_length

    def validate(self, reason: str = "Invalid image") -> 'PixelBuffer':
        """Raise InvalidImage unless len(data) == width * height * 4."""
        if not self.is_valid():
            raise InvalidImage(reason)
        return self

    def to_array(self) -> np.ndarray:
        """Read-only H x W x 4 uint8 view over the buffer."""
        self.validate()
        return np.frombuffer(self.data, dtype=np.uint8).reshape(
            self.height, self.width, BYTES_PER_PIXEL
        )

    @classmethod
    def from_array(cls, arr: np.ndarray) -> 'PixelBuffer':
        """Build a buffer from an H x W x 4 uint8 array (copies the pixels)."""
        if arr.ndim != 3 or arr.shape[2] != BYTES_PER_PIXEL:
            raise InvalidImage(f"Expected RGBA array, got shape {arr.shape}")
        h, w = arr.shape[:2]
        return cls(width=w, height=h, data=np.ascontiguousarray(arr, dtype=np.uint8).tobytes())


@dataclass
class AnimatedFrame:
    """One frame of an animation: pixels, timing and placement on the canvas."""
    image: PixelBuffer
    delay: Tuple[int, int] = (0, 1)  # milliseconds as (numerator, denominator)
    x_offset: int = 0
    y_offset: int = 0

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def delay_ms(self) -> int:
        """Delay in whole milliseconds.

        Truncating integer division of the rational delay; any sub-millisecond
        part is dropped.
        """
        numer, denom = self.delay
        return numer // denom
