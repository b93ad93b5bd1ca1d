"""Vector similarity helpers used by the retriever."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)`` clamped to ``[-1, 1]``.

    Returns ``0.0`` instead of NaN when either vector has zero norm, and
    also when the vectors differ in length (they come from different
    embedding models and are not comparable).
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    # Floating-point error can push |v|.|v| slightly past 1.0.
    return max(-1.0, min(1.0, score))


def cosine_similarities(query: Sequence[float], matrix: Sequence[Sequence[float]]) -> list[float]:
    """Vectorized :func:`cosine_similarity` of *query* against each row of *matrix*.

    Rows whose length differs from the query, and zero-norm rows, score 0.
    """
    if not matrix:
        return []

    q = np.asarray(query, dtype=np.float64)
    q_norm = float(np.linalg.norm(q))
    rows = list(matrix)
    dims = {len(row) for row in rows}
    if q_norm == 0.0 or dims != {len(q)}:
        # Mixed dimensions cannot be stacked; fall back to the scalar path.
        return [cosine_similarity(query, row) for row in rows]

    m = np.asarray(rows, dtype=np.float64)
    norms = np.linalg.norm(m, axis=1)
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms == 0.0, 0.0, dots / (norms * q_norm))
    return [float(s) for s in np.clip(scores, -1.0, 1.0)]
