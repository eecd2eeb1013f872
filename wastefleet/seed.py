import numpy as np


def init_seed(seed=None) -> np.random.Generator:
    """Random source for the fill simulation. `None` draws fresh OS entropy."""
    return np.random.default_rng(seed)
