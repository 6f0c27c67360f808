"""Execution — executor protocol, paper trading and live signing."""

from src.execution.executor import ExecutionResult, PaperExecutor, TradeExecutor, build_executor
from src.execution.live import LiveExecutor

__all__ = [
    "ExecutionResult",
    "LiveExecutor",
    "PaperExecutor",
    "TradeExecutor",
    "build_executor",
]
