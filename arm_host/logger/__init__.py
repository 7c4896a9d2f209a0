from .logger import DedupFilter, JointLogBundle, JsonlLogger, Logger, TelemetryRecorder

__all__ = ["DedupFilter", "Logger", "JsonlLogger", "TelemetryRecorder", "JointLogBundle"]
