"""Sequence storage and corpus utilities."""

from .store import Sequence, SequenceStore
from .synthetic import make_synthetic_corpus, make_motif, render_instance

__all__ = [
    "Sequence",
    "SequenceStore",
    "make_synthetic_corpus",
    "make_motif",
    "render_instance",
]
