"""Metrics for admission decisions and stream sessions."""

from .core import record_admission, record_stream_session
from .registry import MetricsClient

__all__ = ["MetricsClient", "record_admission", "record_stream_session"]
