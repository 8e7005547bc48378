"""
Acoustic pattern discovery.

Aligns segmented feature sequences under a banded, weighted DTW metric,
groups them with average-linkage (UPGMA) clustering and builds a merged
state-chain model for every cluster.
"""

__version__ = "0.1.0"
