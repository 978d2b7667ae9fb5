"""Callback/hook system for canvasflow run lifecycle events."""

from canvasflow.callbacks.base import BaseCallback, ExecutionCallback
from canvasflow.callbacks.logging import LoggingCallback

__all__ = ["ExecutionCallback", "BaseCallback", "LoggingCallback"]
