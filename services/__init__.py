"""
PIXEL RELAY - Services Layer

Worker pool scheduling and the host-facing image service.
"""

from services.memory_manager import MemoryManager
from services.task_scheduler import PendingHandle, TaskScheduler
from services.image_service import ImageService

__all__ = [
    'MemoryManager',
    'PendingHandle',
    'TaskScheduler',
    'ImageService',
]
