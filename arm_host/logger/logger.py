# arm_host/logger/logger.py
from __future__ import annotations

import json
import logging
import os
import threading
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Optional

import numpy as np


class DedupFilter(logging.Filter):
    """
    Suppress repeated messages per (logger_name, level) within a cooldown window.
    A sensor that keeps failing every tick logs once per window instead of at
    the loop rate.
    """
    def __init__(self, cooldown_s: float = 0.0) -> None:
        super().__init__()
        self.cooldown_s = float(cooldown_s)
        self._lock = threading.Lock()
        self._last: dict[tuple[str, int], tuple[str, float]] = {}  # (name, level) -> (msg, ts)

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        now = time.monotonic()
        key = (record.name, record.levelno)

        with self._lock:
            last = self._last.get(key)
            if last is not None:
                last_msg, last_ts = last
                if msg == last_msg:
                    if self.cooldown_s <= 0.0:
                        return False
                    if (now - last_ts) < self.cooldown_s:
                        return False

            self._last[key] = (msg, now)
            return True


class Logger:
    """
    Rotating text logger with per-(logger, level) dedup suppression.

    Wraps a named stdlib logger, so the joint controller can be handed
    ``Logger(...).get_logger()`` and everything it logs lands in the file.
    """
    def __init__(
        self,
        log_file: str,
        logger_name: str,
        log_dir: str = "logs",
        level: int = logging.INFO,
        max_bytes: int = 5_000_000,
        backup_count: int = 5,
        console: bool = False,
        dedup_cooldown_s: float = 1.0,
    ) -> None:
        os.makedirs(log_dir, exist_ok=True)
        full_log_path = os.path.join(log_dir, log_file)

        _logger = logging.getLogger(logger_name)
        _logger.setLevel(level)
        _logger.propagate = False

        # Avoid duplicate handlers if logger already exists (common in pytest)
        if not _logger.handlers:
            fmt = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

            fh = RotatingFileHandler(
                full_log_path,
                maxBytes=int(max_bytes),
                backupCount=int(backup_count),
            )
            fh.setLevel(level)
            fh.setFormatter(fmt)
            fh.addFilter(DedupFilter(cooldown_s=dedup_cooldown_s))
            _logger.addHandler(fh)

            if console:
                ch = logging.StreamHandler()
                ch.setLevel(level)
                ch.setFormatter(fmt)
                ch.addFilter(DedupFilter(cooldown_s=dedup_cooldown_s))
                _logger.addHandler(ch)

        self.path = full_log_path
        self._logger = _logger
        self._logger.debug("Logger '%s' initialized -> %s", logger_name, full_log_path)

    def get_logger(self) -> logging.Logger:
        return self._logger

    def close(self) -> None:
        for h in list(self._logger.handlers):
            h.close()
            self._logger.removeHandler(h)


class JsonlLogger:
    """
    JSONL recorder for joint runs.
    Each call appends one JSON object per line (buffered=1 for near-real-time).
    """
    def __init__(self, path: str) -> None:
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._f = open(self.path, "a", buffering=1, encoding="utf-8")

    def write(self, event: str, **data: Any) -> None:
        row = {
            "ts_ns": time.time_ns(),
            "event": event,
            **self._normalize(data),
        }
        line = json.dumps(row, ensure_ascii=False, default=str)
        with self._lock:
            self._f.write(line + "\n")

    def close(self) -> None:
        with self._lock:
            if not self._f.closed:
                self._f.close()

    def _normalize(self, obj: Any) -> Any:
        """numpy arrays and scalars -> lists and floats, recursing into dicts and lists."""
        if isinstance(obj, dict):
            return {k: self._normalize(v) for k, v in obj.items()}

        if isinstance(obj, (list, tuple)):
            return [self._normalize(v) for v in obj]

        if isinstance(obj, np.ndarray):
            return obj.tolist()

        if isinstance(obj, np.generic):
            return obj.item()

        return obj


class TelemetryRecorder:
    """
    Bus subscriber that writes every event on the given topics to a JsonlLogger.

        recorder = TelemetryRecorder(bus, JsonlLogger("logs/elbow.jsonl"))
    """
    def __init__(self, bus: Any, jsonl: JsonlLogger, topics: Iterable[str] = ("joint.telemetry", "joint.tick_skipped")) -> None:
        self._jsonl = jsonl
        self.count = 0
        for topic in topics:
            bus.subscribe(topic, self._make_handler(topic))

    def _make_handler(self, topic: str):
        def handler(data: Any) -> None:
            if isinstance(data, dict):
                self._jsonl.write(topic, **data)
            else:
                self._jsonl.write(topic, data=data)
            self.count += 1
        return handler


class JointLogBundle:
    """
    Convenience wrapper: a human-readable rotating Logger + a JSONL event logger.
    """
    def __init__(
        self,
        name: str,
        log_dir: str = "logs",
        level: int = logging.INFO,
        console: bool = False,
        max_bytes: int = 5_000_000,
        backup_count: int = 5,
        dedup_cooldown_s: float = 1.0,
        jsonl_file: Optional[str] = None,
        text_file: Optional[str] = None,
    ) -> None:
        text_file = text_file or f"{name}.log"
        jsonl_file = jsonl_file or f"{name}.jsonl"

        self.text = Logger(
            log_file=text_file,
            logger_name=f"arm_host.{name}",
            log_dir=log_dir,
            level=level,
            console=console,
            max_bytes=max_bytes,
            backup_count=backup_count,
            dedup_cooldown_s=dedup_cooldown_s,
        )
        self.events = JsonlLogger(path=str(Path(log_dir) / jsonl_file))

    def close(self) -> None:
        self.events.close()
        self.text.close()
