"""Streaming read-file analysis."""
from .analyzer import RecordStreamAnalyzer, StreamMetrics

__all__ = ["RecordStreamAnalyzer", "StreamMetrics"]
