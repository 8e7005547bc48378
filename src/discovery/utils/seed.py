"""
Reproducibility utilities.

Alignment and clustering are deterministic; seeding only matters for the
synthetic corpus generator and for anything that samples sequences.
"""

import random

import numpy as np


def set_seed(seed: int) -> None:
    """
    Seed the Python and NumPy global generators.

    Args:
        seed: Random seed
    """
    random.seed(seed)
    np.random.seed(seed)


def get_rng(seed: int, *keys: int) -> np.random.Generator:
    """
    Get a NumPy generator for ``seed``.

    Extra integer ``keys`` select an independent child stream, so e.g.
    ``get_rng(seed, motif_id)`` gives every motif its own reproducible
    generator regardless of generation order.

    Args:
        seed: Base random seed
        *keys: Optional stream keys

    Returns:
        numpy Generator instance
    """
    if not keys:
        return np.random.default_rng(seed)
    return np.random.default_rng(np.random.SeedSequence([seed, *keys]))
