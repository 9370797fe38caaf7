from typing import Callable, Dict, NamedTuple, Sequence

import numpy as np
from scipy.optimize import linear_sum_assignment


class Assignment(NamedTuple):
    partners: Dict[int, int]
    S: np.ndarray

    def score_of(self, row: int) -> float:
        return float(self.S[row, self.partners[row]])


def assign_partners(similarity: Callable, rows: Sequence, cols: Sequence) -> Assignment:
    """
    Pair every row with at most one column so the summed similarity is largest.

    Rows left over when there are more rows than columns have no entry in
    ``partners``.
    """
    sim_mat = np.array([[similarity(r, c) for c in cols] for r in rows], dtype=float).reshape(
        len(rows), len(cols)
    )
    if sim_mat.size == 0:
        return Assignment(partners={}, S=sim_mat)
    row_ind, col_ind = linear_sum_assignment(sim_mat, maximize=True)
    return Assignment(
        partners={int(r): int(c) for r, c in zip(row_ind, col_ind)}, S=sim_mat
    )
