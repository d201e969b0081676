"""
Dictionary-based sparse vectors (token id -> weight) and their algebra.

Absent keys are zeros. Binary operations return new dictionaries; the
`*_inplace` variants update their first argument. Conversions to scipy
sparse structures are provided for callers that need matrix operations.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence

import numpy as np
from scipy.sparse import csc_matrix, csr_matrix

SVEC = dict[int, float]


# =============================================================================
# Reductions
# =============================================================================


def dot(a: Mapping[int, float], b: Mapping[int, float]) -> float:
    """Dot product; iterates the smaller vector and probes the larger one."""
    if len(b) < len(a):
        a, b = b, a
    s = 0.0
    for k, v in a.items():
        w = b.get(k)
        if w is not None:
            s += v * w
    return s


def norm(a: Mapping[int, float]) -> float:
    """L2 norm."""
    return math.sqrt(sum(v * v for v in a.values()))


def nnz(a: Mapping[int, float]) -> int:
    """Number of stored non-zero entries."""
    return sum(1 for v in a.values() if v != 0)


def argmax(a: Mapping[int, float]) -> int | None:
    """Key of the largest weight (lowest key on ties); None for the empty vector."""
    if not a:
        return None
    return min(a, key=lambda k: (-a[k], k))


def argmin(a: Mapping[int, float]) -> int | None:
    """Key of the smallest weight (lowest key on ties); None for the empty vector."""
    if not a:
        return None
    return min(a, key=lambda k: (a[k], k))


# =============================================================================
# Normalization
# =============================================================================


def normalize_inplace(a: SVEC) -> SVEC:
    """Divide a by its L2 norm in place; the zero vector is left unchanged."""
    n = norm(a)
    if n > 0.0:
        for k in a:
            a[k] /= n
    return a


def normalize(a: Mapping[int, float]) -> SVEC:
    """Unit-norm copy of a; the zero vector is returned unchanged."""
    return normalize_inplace(dict(a))


def prune_below(a: Mapping[int, float], minweight: float) -> SVEC:
    """Copy of a without entries whose weight is below minweight."""
    return {k: v for k, v in a.items() if v >= minweight}


# =============================================================================
# Elementwise arithmetic
# =============================================================================


def add_inplace(a: SVEC, b: Mapping[int, float]) -> SVEC:
    """Update a to a + b."""
    for k, v in b.items():
        a[k] = a.get(k, 0.0) + v
    return a


def add(a: Mapping[int, float], b: Mapping[int, float]) -> SVEC:
    return add_inplace(dict(a), b)


def sub(a: Mapping[int, float], b: Mapping[int, float]) -> SVEC:
    """a - b."""
    c = dict(a)
    for k, v in b.items():
        c[k] = c.get(k, 0.0) - v
    return c


def mul(a: Mapping[int, float], b: Mapping[int, float]) -> SVEC:
    """Elementwise product; only keys present in both vectors survive."""
    if len(b) < len(a):
        a, b = b, a
    return {k: v * b[k] for k, v in a.items() if k in b}


def scale(a: Mapping[int, float], factor: float) -> SVEC:
    return {k: v * factor for k, v in a.items()}


def divide(a: Mapping[int, float], divisor: float) -> SVEC:
    return {k: v / divisor for k, v in a.items()}


def vsum(vectors: Iterable[Mapping[int, float]]) -> SVEC:
    """Sum of a collection of vectors."""
    s: SVEC = {}
    for v in vectors:
        add_inplace(s, v)
    return s


def centroid(vectors: Sequence[Mapping[int, float]]) -> SVEC:
    """Elementwise mean of vectors; the empty collection gives the empty vector."""
    if not vectors:
        return {}
    return divide(vsum(vectors), len(vectors))


# =============================================================================
# Distances
# =============================================================================


def _clamp(x: float, lo: float = -1.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def cosine(a: Mapping[int, float], b: Mapping[int, float]) -> float:
    """Cosine similarity; 0 when either vector is zero."""
    na, nb = norm(a), norm(b)
    if na == 0.0 or nb == 0.0:
        return 0.0
    return _clamp(dot(a, b) / (na * nb))


def cosine_distance(a: Mapping[int, float], b: Mapping[int, float]) -> float:
    """1 - cos(a, b), in [0, 2]."""
    return 1.0 - cosine(a, b)


def angle_distance(a: Mapping[int, float], b: Mapping[int, float]) -> float:
    """Angle between a and b, in [0, pi]."""
    return math.acos(cosine(a, b))


def normalized_cosine_distance(a: Mapping[int, float], b: Mapping[int, float]) -> float:
    """
    Cosine distance for unit-norm inputs.

    It supposes both vectors are normalized (see normalize); passing other
    vectors gives meaningless results.
    """
    return 1.0 - _clamp(dot(a, b))


def normalized_angle_distance(a: Mapping[int, float], b: Mapping[int, float]) -> float:
    """Angle between unit-norm inputs (see normalized_cosine_distance)."""
    return math.acos(_clamp(dot(a, b)))


# =============================================================================
# scipy conversions
# =============================================================================


def to_sparsevec(a: Mapping[int, float], dim: int = 0) -> csr_matrix:
    """Row vector (1 x dim) from a sparse dict; dim grows to fit the largest key."""
    keys = np.fromiter(a.keys(), dtype=np.int64, count=len(a))
    values = np.fromiter(a.values(), dtype=np.float64, count=len(a))
    dim = max(dim, int(keys.max()) + 1 if len(keys) else 0)
    return csr_matrix((values, (np.zeros(len(keys), dtype=np.int64), keys)), shape=(1, dim))


def from_sparsevec(x) -> SVEC:
    """Sparse dict from a scipy sparse row or column vector."""
    coo = x.tocoo()
    keys = coo.col if coo.shape[0] == 1 else coo.row
    out: SVEC = {}
    for k, v in zip(keys.tolist(), coo.data.tolist()):
        out[int(k)] = out.get(int(k), 0.0) + float(v)
    return out


def to_sparse_matrix(vectors: Sequence[Mapping[int, float]], dim: int = 0) -> csc_matrix:
    """Matrix (dim x len(vectors)) whose columns are the given vectors."""
    rows: list[int] = []
    cols: list[int] = []
    data: list[float] = []
    for j, v in enumerate(vectors):
        for k, w in v.items():
            rows.append(k)
            cols.append(j)
            data.append(w)
    dim = max(dim, max(rows) + 1 if rows else 0)
    return csc_matrix((data, (rows, cols)), shape=(dim, len(vectors)), dtype=np.float64)


__all__ = [
    "SVEC",
    "dot",
    "norm",
    "nnz",
    "argmax",
    "argmin",
    "normalize",
    "normalize_inplace",
    "prune_below",
    "add",
    "add_inplace",
    "sub",
    "mul",
    "scale",
    "divide",
    "vsum",
    "centroid",
    "cosine",
    "cosine_distance",
    "angle_distance",
    "normalized_cosine_distance",
    "normalized_angle_distance",
    "to_sparsevec",
    "from_sparsevec",
    "to_sparse_matrix",
]
