"""Maximal run detection shared by the binarizer, bit decoder and stripe normalizer."""

from typing import List, NamedTuple

import numpy as np


class Run(NamedTuple):
    """A maximal span ``[start, end)`` of identical values."""
    start: int
    end: int
    value: int

    @property
    def length(self) -> int:
        return self.end - self.start


def run_boundaries(sequence: np.ndarray) -> np.ndarray:
    """
    Indices where a new run begins, plus the sequence length.

    For 2-D input (a row of pixels with channels) a change in any channel
    starts a new run.

    Returns:
        Array ``[0, c1, c2, ..., len]``; ``[0]`` alone for empty input
    """
    seq = np.asarray(sequence)
    if seq.shape[0] == 0:
        return np.array([0], dtype=np.int64)

    diff = seq[1:] != seq[:-1]
    if diff.ndim > 1:
        diff = diff.reshape(diff.shape[0], -1).any(axis=1)

    changes = np.flatnonzero(diff) + 1
    return np.concatenate(([0], changes, [seq.shape[0]])).astype(np.int64)


def find_runs(sequence: np.ndarray) -> List[Run]:
    """Single left-to-right scan of a 1-D sequence into maximal runs."""
    seq = np.asarray(sequence)
    bounds = run_boundaries(seq)
    return [
        Run(int(start), int(end), int(seq[start]))
        for start, end in zip(bounds[:-1], bounds[1:])
    ]
