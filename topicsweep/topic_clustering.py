"""
topic_clustering.py

Distance & clustering engine for topicsweep.

- Pairwise Jensen-Shannon divergence between rows that are probability
  distributions (topics over documents, or documents over topics).
- Agglomerative hierarchical clustering (Ward linkage by default) on the
  resulting divergence matrix via scipy.
- A Dendrogram value object exposing the merge sequence, the leaf order and
  flat cuts (by number of clusters or by height).

JS divergence is symmetric, bounded by ln 2 (1 in base 2) and finite for
distributions with disjoint support, which KL divergence is not.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, leaves_list, linkage as scipy_linkage
from scipy.spatial.distance import jensenshannon, squareform

from .errors import InvalidDistributionError
from .lda_trainer import TopicModel

_LINKAGE_METHODS = {"ward", "single", "complete", "average", "weighted", "centroid", "median"}


# ---------------------------------------------------------------------
# Divergence
# ---------------------------------------------------------------------


def validate_distributions(matrix: Any, atol: float = 1e-6) -> np.ndarray:
    """
    Check that every row is a probability distribution.

    Raises
    ------
    InvalidDistributionError
        On NaN/Inf, negative entries, or a row sum differing from 1 by more
        than `atol`. The offending row index is attached as `.row`.
    """
    P = np.asarray(matrix, dtype=float)
    if P.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got shape {P.shape}.")
    if P.shape[0] == 0 or P.shape[1] == 0:
        raise ValueError(f"Cannot compute divergences for an empty matrix of shape {P.shape}.")

    finite = np.isfinite(P).all(axis=1)
    if not finite.all():
        row = int(np.flatnonzero(~finite)[0])
        raise InvalidDistributionError(f"Row {row} contains NaN/Inf.", row=row)

    negative = (P < 0).any(axis=1)
    if negative.any():
        row = int(np.flatnonzero(negative)[0])
        raise InvalidDistributionError(f"Row {row} has negative entries.", row=row)

    sums = P.sum(axis=1)
    bad = np.abs(sums - 1.0) > atol
    if bad.any():
        row = int(np.flatnonzero(bad)[0])
        raise InvalidDistributionError(
            f"Row {row} sums to {sums[row]:.8f}, not 1 (atol={atol}). "
            "Normalize the distributions before computing divergences.",
            row=row,
        )
    return P


def js_divergence(p: Sequence[float], q: Sequence[float], base: Optional[float] = None) -> float:
    """Jensen-Shannon divergence of two distributions (natural log unless `base`)."""
    P = validate_distributions(np.vstack([np.asarray(p, dtype=float), np.asarray(q, dtype=float)]))
    return float(pairwise_divergence(P, base=base)[0, 1])


def pairwise_divergence(matrix: Any, base: Optional[float] = None, atol: float = 1e-6) -> np.ndarray:
    """
    Symmetric matrix of pairwise JS divergences between rows.

    Parameters
    ----------
    matrix:
        (n, d) array whose rows are probability distributions.
    base:
        Logarithm base; None means natural log (values in [0, ln 2]),
        2 gives values in [0, 1].
    atol:
        Tolerance on row sums.

    Returns
    -------
    np.ndarray
        (n, n) symmetric matrix with a zero diagonal.
    """
    P = validate_distributions(matrix, atol=atol)
    n = P.shape[0]
    D = np.zeros((n, n), dtype=float)

    for i in range(n - 1):
        # scipy returns the JS distance; its square is the divergence
        js = jensenshannon(P[i][None, :], P[i + 1 :], base=base, axis=1) ** 2
        D[i, i + 1 :] = js
        D[i + 1 :, i] = js

    # sqrt of a rounding-negative divergence is NaN
    D = np.nan_to_num(D, nan=0.0)
    upper = np.log(2.0) if base is None else np.log(2.0) / np.log(base)
    np.clip(D, 0.0, upper, out=D)
    np.fill_diagonal(D, 0.0)
    return D


def topic_distributions_over_documents(theta: Any) -> np.ndarray:
    """
    (K, D) matrix whose row t is topic t's distribution over documents
    (theta columns normalized to sum to 1).
    """
    T = np.asarray(theta, dtype=float).T
    sums = T.sum(axis=1, keepdims=True)
    if np.any(sums <= 0):
        raise InvalidDistributionError("A topic has zero mass over all documents.")
    return T / sums


# ---------------------------------------------------------------------
# Dendrogram
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Merge:
    """
    One agglomeration step.

    Cluster ids follow the scipy convention: leaves are 0..n-1 and the
    cluster created by merge i has id n + i.
    """

    left: int
    right: int
    height: float
    size: int


@dataclass(frozen=True, eq=False)
class Dendrogram:
    """
    Binary merge tree over labelled items.

    Attributes
    ----------
    labels:
        Item labels in leaf-id order (topic ids or document ids).
    linkage_matrix:
        scipy linkage matrix, shape (n-1, 4).
    distances:
        (n, n) dissimilarity matrix the tree was built from.
    method:
        Linkage method.
    """

    labels: Tuple[Any, ...]
    linkage_matrix: np.ndarray
    distances: np.ndarray
    method: str

    @property
    def n_leaves(self) -> int:
        return len(self.labels)

    @property
    def merges(self) -> List[Merge]:
        return [
            Merge(left=int(row[0]), right=int(row[1]), height=float(row[2]), size=int(row[3]))
            for row in self.linkage_matrix
        ]

    @property
    def leaf_order(self) -> List[Any]:
        """Labels in dendrogram (left-to-right) order."""
        if self.n_leaves < 2:
            return list(self.labels)
        return [self.labels[i] for i in leaves_list(self.linkage_matrix)]

    def members(self, cluster_id: int) -> List[Any]:
        """Labels of all leaves under a (leaf or merged) cluster id."""
        n = self.n_leaves
        if cluster_id < n:
            return [self.labels[cluster_id]]
        row = self.linkage_matrix[cluster_id - n]
        return self.members(int(row[0])) + self.members(int(row[1]))

    def cut(self, n_clusters: int) -> pd.Series:
        """Flat clustering into at most `n_clusters` groups (ids from 1)."""
        if n_clusters < 1:
            raise ValueError("n_clusters must be >= 1.")
        if self.n_leaves < 2:
            return self._as_series(np.ones(self.n_leaves, dtype=np.int32))
        return self._as_series(fcluster(self.linkage_matrix, t=n_clusters, criterion="maxclust"))

    def cut_at(self, height: float) -> pd.Series:
        """Flat clustering by a horizontal threshold on merge height."""
        if self.n_leaves < 2:
            return self._as_series(np.ones(self.n_leaves, dtype=np.int32))
        return self._as_series(fcluster(self.linkage_matrix, t=height, criterion="distance"))

    def _as_series(self, assignment: np.ndarray) -> pd.Series:
        return pd.Series(assignment, index=pd.Index(self.labels, name="label"), name="cluster")

    def to_frame(self) -> pd.DataFrame:
        """Merge sequence as a DataFrame (step, left, right, height, size)."""
        return pd.DataFrame(
            [
                {"step": i, "left": m.left, "right": m.right, "height": m.height, "size": m.size}
                for i, m in enumerate(self.merges)
            ],
            columns=["step", "left", "right", "height", "size"],
        )


def cluster(
    distance_matrix: Any,
    linkage: str = "ward",
    labels: Optional[Sequence[Any]] = None,
    *,
    squared: bool = True,
) -> Dendrogram:
    """
    Agglomerative hierarchical clustering of a dissimilarity matrix.

    Parameters
    ----------
    distance_matrix:
        (n, n) symmetric matrix with a zero diagonal, e.g. from
        `pairwise_divergence`.
    linkage:
        scipy linkage method ("ward" by default).
    labels:
        Optional item labels (default 0..n-1).
    squared:
        Whether the entries are squared distances. JS divergence is the
        square of the JS metric, so for Ward linkage the square root is
        taken before clustering; merge heights are then in JS-distance
        units. Ignored for other linkage methods.

    Returns
    -------
    Dendrogram
    """
    if linkage not in _LINKAGE_METHODS:
        raise ValueError(f"linkage must be one of {sorted(_LINKAGE_METHODS)}, got {linkage!r}.")

    D = np.asarray(distance_matrix, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise ValueError(f"distance_matrix must be square, got shape {D.shape}.")
    n = D.shape[0]
    if n < 1:
        raise ValueError("Cannot build a dendrogram over zero items.")
    if not np.all(np.isfinite(D)) or np.any(D < 0):
        raise ValueError("distance_matrix must be finite and non-negative.")
    if not np.allclose(D, D.T, atol=1e-12):
        raise ValueError("distance_matrix must be symmetric.")

    labels = tuple(range(n)) if labels is None else tuple(labels)
    if len(labels) != n:
        raise ValueError(f"Got {len(labels)} labels for {n} items.")

    if n == 1:
        # a single leaf: no merges
        return Dendrogram(labels=labels, linkage_matrix=np.empty((0, 4)), distances=D, method=linkage)

    work = D.copy()
    np.fill_diagonal(work, 0.0)
    if linkage == "ward" and squared:
        work = np.sqrt(work)

    Z = scipy_linkage(squareform(work, checks=False), method=linkage)
    return Dendrogram(labels=labels, linkage_matrix=Z, distances=D, method=linkage)


# ---------------------------------------------------------------------
# Model-level helpers
# ---------------------------------------------------------------------


def topic_dendrogram(model: TopicModel, linkage: str = "ward", base: Optional[float] = None) -> Dendrogram:
    """Cluster topics by the JS divergence of their distributions over documents."""
    P = topic_distributions_over_documents(model.theta)
    D = pairwise_divergence(P, base=base)
    return cluster(D, linkage=linkage, labels=list(range(model.k)))


def document_dendrogram(model: TopicModel, linkage: str = "ward", base: Optional[float] = None) -> Dendrogram:
    """Cluster documents by the JS divergence of their topic distributions."""
    D = pairwise_divergence(model.theta, base=base)
    return cluster(D, linkage=linkage, labels=list(model.doc_ids))
