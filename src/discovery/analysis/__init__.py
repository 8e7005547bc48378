"""Discovery orchestration and reporting."""

from .run_discovery import DiscoveryResult, run_discovery
from .report import clusters_table, generate_report, summarize, write_outputs

__all__ = [
    "DiscoveryResult",
    "run_discovery",
    "clusters_table",
    "generate_report",
    "summarize",
    "write_outputs",
]
