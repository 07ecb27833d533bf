"""
PIXEL RELAY - Image Tasks

One Task class per host operation. A task owns its inputs and runs in two
phases:

- compute(): on a worker thread. Runs the operation and returns its raw
  output, or raises an ImageTaskError.
- resolve(output): on the control thread, only after compute succeeded.
  Builds the value the host sees.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

import processing
from adapters import animated_frame_to_host, image_to_host
from pixels import AnimatedFrame, PixelBuffer


class Task:
    """A unit of work producing an output or raising an ImageTaskError."""

    name = 'task'

    def compute(self) -> Any:
        raise NotImplementedError

    def resolve(self, output: Any) -> Any:
        return output


@dataclass
class ResizeTask(Task):
    image: PixelBuffer
    size: int
    preserve_aspect: bool = False

    name = 'resize'

    def compute(self) -> PixelBuffer:
        return processing.resize_image(self.image, self.size, self.preserve_aspect)

    def resolve(self, output: PixelBuffer) -> Dict[str, Any]:
        return image_to_host(output)


@dataclass
class CompositeTask(Task):
    base: PixelBuffer
    overlay: PixelBuffer
    x: int
    y: int

    name = 'composite'

    def compute(self) -> PixelBuffer:
        return processing.composite_image(self.base, self.overlay, self.x, self.y)

    def resolve(self, output: PixelBuffer) -> Dict[str, Any]:
        return image_to_host(output)


@dataclass
class EncodeApngTask(Task):
    frames: List[PixelBuffer]

    name = 'encode_apng'

    def compute(self) -> bytes:
        return processing.encode_apng(self.frames)


@dataclass
class EncodeGifTask(Task):
    frames: List[PixelBuffer]

    name = 'encode_gif'

    def compute(self) -> bytes:
        return processing.encode_gif(self.frames)


@dataclass
class DecodeGifTask(Task):
    data: bytes

    name = 'decode_gif'

    def compute(self) -> List[AnimatedFrame]:
        return processing.decode_gif(self.data)

    def resolve(self, output: List[AnimatedFrame]) -> List[Dict[str, Any]]:
        return [animated_frame_to_host(frame) for frame in output]


@dataclass
class DecodePngTask(Task):
    data: bytes

    name = 'decode_png'

    def compute(self) -> PixelBuffer:
        return processing.decode_png(self.data)

    def resolve(self, output: PixelBuffer) -> Dict[str, Any]:
        return image_to_host(output)
