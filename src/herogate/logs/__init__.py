"""
Builder and deployer logs of an application.
"""

from .aggregator import LogAggregator, entries_after, merge_entries
from .builder import BuilderLogs, builder_log_id
from .deployer import DeployerLogs

__all__ = [
    "BuilderLogs",
    "DeployerLogs",
    "LogAggregator",
    "builder_log_id",
    "entries_after",
    "merge_entries",
]
