"""
CloudFormation stack management for herogate applications.
"""

from .blueprint import Blueprint, progress_percent
from .diagnostics import failure_report
from .progress import run_with_progress
from .stack_manager import StackManager

__all__ = [
    "Blueprint",
    "StackManager",
    "failure_report",
    "progress_percent",
    "run_with_progress",
]
