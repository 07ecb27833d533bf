"""
PIXEL RELAY - Boundary Adapter

Converts host values into pixel buffers and back.

A host image is any mapping with 'data' (bytes-like), 'width' and 'height'
keys, the same shape results are handed back in. Shape problems raise
ArgumentError synchronously, before anything is scheduled. The byte length
is deliberately not checked here: that is the operation's job, reported
through the pending handle as InvalidImage.
"""

from collections.abc import Mapping, Sequence
from numbers import Integral
from typing import Any, Dict, List

from pixels import U32_MAX, AnimatedFrame, ArgumentError, PixelBuffer

_BYTES_LIKE = (bytes, bytearray, memoryview)


def uint_from_host(value: Any, name: str) -> int:
    """Accept an integer in the u32 range."""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ArgumentError(f"{name} must be an integer, got {type(value).__name__}")
    value = int(value)
    if value < 0 or value > U32_MAX:
        raise ArgumentError(f"{name} must be between 0 and {U32_MAX}, got {value}")
    return value


def bytes_from_host(value: Any, name: str = 'buffer') -> bytes:
    """Copy a bytes-like host value into an immutable bytes object."""
    if not isinstance(value, _BYTES_LIKE):
        raise ArgumentError(f"{name} must be bytes-like, got {type(value).__name__}")
    return bytes(value)


def image_from_host(value: Any, name: str = 'image') -> PixelBuffer:
    """
    Build a PixelBuffer from a host image.

    The pixel bytes are copied so the task never shares memory with the
    caller.
    """
    if isinstance(value, PixelBuffer):
        return PixelBuffer(
            width=uint_from_host(value.width, f"{name}.width"),
            height=uint_from_host(value.height, f"{name}.height"),
            data=bytes_from_host(value.data, f"{name}.data"),
        )
    if not isinstance(value, Mapping):
        raise ArgumentError(f"{name} must be an image object, got {type(value).__name__}")

    for key in ('data', 'width', 'height'):
        if key not in value:
            raise ArgumentError(f"{name} is missing '{key}'")

    return PixelBuffer(
        width=uint_from_host(value['width'], f"{name}.width"),
        height=uint_from_host(value['height'], f"{name}.height"),
        data=bytes_from_host(value['data'], f"{name}.data"),
    )


def frames_from_host(value: Any, name: str = 'frames') -> List[PixelBuffer]:
    """Build the frame list for an animation encode. An empty list is allowed."""
    if isinstance(value, (str, Mapping) + _BYTES_LIKE) or not isinstance(value, Sequence):
        raise ArgumentError(f"{name} must be a sequence of images, got {type(value).__name__}")
    return [image_from_host(item, f"{name}[{i}]") for i, item in enumerate(value)]


def image_to_host(image: PixelBuffer) -> Dict[str, Any]:
    return {
        'data': image.data,
        'width': image.width,
        'height': image.height,
    }


def animated_frame_to_host(frame: AnimatedFrame) -> Dict[str, Any]:
    """Host form of a decoded frame. 'delay' is truncated to whole milliseconds."""
    out = image_to_host(frame.image)
    out['delay'] = frame.delay_ms
    out['x'] = frame.x_offset
    out['y'] = frame.y_offset
    return out
