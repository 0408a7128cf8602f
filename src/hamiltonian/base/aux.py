from __future__ import annotations
import numpy as np
import yaml


def yaml_parser(input_data):
    """Parse YAML text, a ``.yml``/``.yaml`` path, or pass a mapping through."""
    if isinstance(input_data, dict):
        return input_data
    output = None
    if isinstance(input_data, str) and input_data.lower().endswith(('.yml', '.yaml')):
        with open(input_data, 'r') as stream:
            output = yaml.safe_load(stream)
    else:
        output = yaml.safe_load(input_data)
    if output is None:
        return {}
    if not isinstance(output, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(output).__name__}")
    return output


def stored_rows(mat) -> np.ndarray:
    """Sorted indices of rows holding at least one stored entry."""
    coo = mat.tocoo()
    return np.unique(coo.row[coo.data != 0])


def stored_cols(mat) -> np.ndarray:
    """Sorted indices of columns holding at least one stored entry."""
    coo = mat.tocoo()
    return np.unique(coo.col[coo.data != 0])


def approxruns(values, atol):
    """Ranges of consecutive ``values`` whose neighbours differ by at most ``atol``."""
    runs = []
    start = 0
    for k in range(1, len(values) + 1):
        if k == len(values) or abs(values[k] - values[k - 1]) > atol:
            runs.append(range(start, k))
            start = k
    return runs
