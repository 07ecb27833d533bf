"""
Shared fixtures.

Tests run on the main thread, which owns the QCoreApplication and therefore
plays the control thread for every scheduler created here.
"""

import pytest
from PySide6.QtCore import QCoreApplication

from services.image_service import ImageService
from services.task_scheduler import TaskScheduler


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def scheduler(qapp):
    sched = TaskScheduler({'max_workers': 4})
    yield sched
    sched.shutdown()


@pytest.fixture
def service(qapp):
    svc = ImageService(settings={'max_workers': 4})
    yield svc
    svc.shutdown()
