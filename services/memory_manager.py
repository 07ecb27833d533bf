"""
PIXEL RELAY - Memory Manager

Size the worker thread pool from CPU cores and free memory.
"""

import multiprocessing

import psutil


class MemoryManager:
    """Decide how many image tasks may run at once."""

    # RAM left untouched for the host application and the rest of the system
    SAFETY_MARGIN_GB = 1.0

    # Estimated peak memory per busy worker thread (input copy, output and
    # codec working buffers for a typical animation)
    MEMORY_PER_WORKER_GB = 0.25

    # Upper bound on threads; beyond this the GIL and memory bandwidth win
    MAX_WORKERS = 8

    # Lower bound so one slow decode cannot stall every other task
    MIN_WORKERS = 2

    def get_cpu_count(self) -> int:
        return multiprocessing.cpu_count()

    def get_available_memory_gb(self) -> float:
        return psutil.virtual_memory().available / (1024 ** 3)

    def get_total_memory_gb(self) -> float:
        return psutil.virtual_memory().total / (1024 ** 3)

    def get_optimal_workers(self) -> int:
        """
        Number of threads for the task pool.

        One thread per spare core, reduced when the in-flight pixel buffers
        would not fit in available memory, and never above MAX_WORKERS.
        """
        cpu_count = self.get_cpu_count()
        available_gb = self.get_available_memory_gb()

        # The control thread keeps a core of its own
        by_cpu = max(self.MIN_WORKERS, cpu_count - 1)

        usable_gb = available_gb - self.SAFETY_MARGIN_GB
        by_memory = max(1, int(usable_gb / self.MEMORY_PER_WORKER_GB))

        return max(1, min(by_cpu, by_memory, self.MAX_WORKERS))

    def get_resource_summary(self) -> dict:
        """CPU and memory figures for the `info` command and diagnostics."""
        return {
            'cpu_count': self.get_cpu_count(),
            'total_memory_gb': round(self.get_total_memory_gb(), 1),
            'available_memory_gb': round(self.get_available_memory_gb(), 1),
            'optimal_workers': self.get_optimal_workers(),
        }
