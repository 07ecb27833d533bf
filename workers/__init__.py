"""
PIXEL RELAY - Workers Module

Task descriptors executed by the worker pool.
"""

from workers.image_tasks import (
    Task,
    ResizeTask,
    CompositeTask,
    EncodeApngTask,
    EncodeGifTask,
    DecodeGifTask,
    DecodePngTask,
)

__all__ = [
    'Task',
    'ResizeTask',
    'CompositeTask',
    'EncodeApngTask',
    'EncodeGifTask',
    'DecodeGifTask',
    'DecodePngTask',
]
