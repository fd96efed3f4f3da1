"""Resident-memory guard for long-running ingestion."""

import psutil


class MemoryGuard:
    """Reports whether the current process uses more memory than allowed."""

    def __init__(self, limit_bytes: int):
        self.limit_bytes = limit_bytes
        self._process = psutil.Process()

    def rss_bytes(self) -> int:
        return self._process.memory_info().rss

    def rss_mb(self) -> int:
        return round(self.rss_bytes() / 1024 / 1024)

    def is_pressure_high(self) -> bool:
        return self.rss_bytes() > self.limit_bytes
