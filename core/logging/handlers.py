"""Logging handlers that write one file per log name, rotated per run.

ModuleDispatchHandler maps each record's logger name through MODULE_TO_LOG
to a file; ThirdPartyHandler sends everything to run-3p.log. On the first
write of a new run, <name>.log becomes <name>.previous.log.

Writes are synchronous, as in stdlib logging. Put a QueueHandler in front
if event loop latency matters.
"""

import logging
from pathlib import Path
from typing import TextIO


class RunLogFile:
    """One <name>.log file, opened lazily and rotated on demand."""

    def __init__(self, log_dir: Path, log_name: str):
        self.current = log_dir / f"{log_name}.log"
        self.previous = log_dir / f"{log_name}.previous.log"
        self._stream: TextIO | None = None

    def rotate(self) -> None:
        """Close, keep the old file as .previous.log, reopen empty."""
        self.close()
        self.previous.unlink(missing_ok=True)
        if self.current.exists():
            self.current.rename(self.previous)

    def write(self, line: str) -> None:
        if self._stream is None:
            self._stream = self.current.open("a", encoding="utf-8")
        self._stream.write(line + "\n")
        self._stream.flush()

    def close(self) -> None:
        if self._stream is not None:
            stream, self._stream = self._stream, None
            stream.close()


class ModuleDispatchHandler(logging.Handler):
    """Routes records to per-module files.

    Files are cached per log name, so open handles are bounded by the number
    of MODULE_TO_LOG targets rather than the number of loggers.

    Usage:
        handler = ModuleDispatchHandler(Path("logs"))
        handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
        logging.getLogger().addHandler(handler)
    """

    def __init__(self, log_dir: Path):
        super().__init__()
        self.log_dir = log_dir
        self._file_cache: dict[str, RunLogFile] = {}

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Lazy: run_manager must stay importable without the handlers
            from core.logging.run_manager import module_to_log_name, should_rotate

            log_name = module_to_log_name(record.name)
            log_file = self._file_cache.get(log_name)
            if log_file is None:
                log_file = self._file_cache[log_name] = RunLogFile(self.log_dir, log_name)

            if should_rotate(log_name):
                log_file.rotate()
            log_file.write(self.format(record))
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        with self.lock:
            for log_file in self._file_cache.values():
                log_file.close()
            self._file_cache.clear()
        super().close()


class ThirdPartyHandler(logging.Handler):
    """Single run-3p.log for library loggers (httpx, httpcore, ...)."""

    LOG_NAME = "run-3p"

    def __init__(self, log_dir: Path):
        super().__init__()
        self.log_dir = log_dir
        self._log_file = RunLogFile(log_dir, self.LOG_NAME)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            from core.logging.run_manager import should_rotate

            if should_rotate(self.LOG_NAME):
                self._log_file.rotate()
            self._log_file.write(self.format(record))
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        with self.lock:
            self._log_file.close()
        super().close()
