"""
PIXEL RELAY - Image Service

Host-facing entry point for the six image operations.
Arguments are parsed on the calling (control) thread; the work itself runs
on the scheduler's worker pool and each call returns a PendingHandle.
"""

from typing import Any, Dict, Optional

from PySide6.QtCore import QObject

from adapters import bytes_from_host, frames_from_host, image_from_host, uint_from_host
from services.task_scheduler import PendingHandle, TaskScheduler
from workers.image_tasks import (
    CompositeTask,
    DecodeGifTask,
    DecodePngTask,
    EncodeApngTask,
    EncodeGifTask,
    ResizeTask,
)


class ImageService(QObject):
    """
    Main service for the image operations.

    Use this from the host's main thread. Argument shape errors raise
    ArgumentError immediately; everything else (invalid pixel data, bad
    bitstreams, encoder failures) arrives as a rejected handle.

    Handles resolve to host values: images are dicts with 'data', 'width'
    and 'height'; encoders resolve to bytes; decode_gif resolves to a list of
    image dicts that also carry 'delay' (whole ms), 'x' and 'y'.
    """

    def __init__(self, scheduler: Optional[TaskScheduler] = None,
                 settings: Optional[Dict[str, Any]] = None, parent: QObject = None):
        super().__init__(parent)
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or TaskScheduler(settings, parent=self)

    @property
    def scheduler(self) -> TaskScheduler:
        return self._scheduler

    def resize_image(self, image: Any, size: Any, preserve_aspect: bool = False) -> PendingHandle:
        """
        Resize to size x size (bilinear).

        Non-square images are stretched unless preserve_aspect is set, in which
        case the result fits within size x size.
        """
        task = ResizeTask(
            image=image_from_host(image),
            size=uint_from_host(size, 'size'),
            preserve_aspect=bool(preserve_aspect),
        )
        return self._scheduler.submit(task)

    def composite_image(self, image: Any, image2: Any, x: Any, y: Any) -> PendingHandle:
        """Draw image2 over image with its top-left corner at (x, y)."""
        task = CompositeTask(
            base=image_from_host(image, 'image'),
            overlay=image_from_host(image2, 'image2'),
            x=uint_from_host(x, 'x'),
            y=uint_from_host(y, 'y'),
        )
        return self._scheduler.submit(task)

    def encode_apng(self, frames: Any) -> PendingHandle:
        return self._scheduler.submit(EncodeApngTask(frames=frames_from_host(frames)))

    def encode_gif(self, frames: Any) -> PendingHandle:
        return self._scheduler.submit(EncodeGifTask(frames=frames_from_host(frames)))

    def decode_gif(self, buffer: Any) -> PendingHandle:
        return self._scheduler.submit(DecodeGifTask(data=bytes_from_host(buffer)))

    def decode_png(self, buffer: Any) -> PendingHandle:
        return self._scheduler.submit(DecodePngTask(data=bytes_from_host(buffer)))

    def shutdown(self, wait: bool = True):
        """Shut down the scheduler if this service created it."""
        if self._owns_scheduler:
            self._scheduler.shutdown(wait=wait)
