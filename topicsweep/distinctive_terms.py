"""
distinctive_terms.py

Distinctive-term statistics across labeled subcorpora (e.g. two research
streams or fields):

- term_counts_by_group : pooled term counts per group
- tf_idf_by_group      : tf-idf with each group treated as one document
                          tf  = n / total(group)
                          idf = ln(n_groups / n_groups containing term)
- weighted_log_odds    : weighted log-odds ratio with an informative
                          Dirichlet prior equal to the pooled counts
                          (Monroe, Colaresi & Quinn 2008), as a z-score

All functions take the same DocumentTermMatrix used for topic modeling and
an external doc_id → group mapping; documents without a group are ignored.
Outputs are long pandas DataFrames (one row per group × term with n > 0).
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
import scipy.sparse as sp

from .corpus import DocumentTermMatrix

LabelsLike = Union[Mapping[str, object], pd.Series]


def _group_term_matrix(dtm: DocumentTermMatrix, labels: LabelsLike) -> Tuple[List[object], np.ndarray]:
    """(groups, G × V pooled count matrix), groups sorted."""
    label_map = labels.to_dict() if isinstance(labels, pd.Series) else dict(labels)
    doc_groups = [label_map.get(doc_id) for doc_id in dtm.doc_ids]
    labeled_rows = [i for i, g in enumerate(doc_groups) if g is not None and not pd.isna(g)]
    if not labeled_rows:
        raise ValueError("None of the DTM documents has a group label.")

    groups = sorted({doc_groups[i] for i in labeled_rows}, key=str)
    if len(groups) < 2:
        raise ValueError(f"At least two groups are required, got {groups}.")

    group_index = {g: j for j, g in enumerate(groups)}
    indicator = sp.csr_matrix(
        (
            np.ones(len(labeled_rows), dtype=np.int64),
            ([group_index[doc_groups[i]] for i in labeled_rows], labeled_rows),
        ),
        shape=(len(groups), dtm.n_documents),
    )
    pooled = (indicator @ dtm.counts).toarray()
    return groups, pooled


def _long_frame(groups: List[object], vocabulary, pooled: np.ndarray, **scores: np.ndarray) -> pd.DataFrame:
    g_idx, t_idx = np.nonzero(pooled)
    data = {
        "group": [groups[g] for g in g_idx],
        "term": [vocabulary[t] for t in t_idx],
        "n": pooled[g_idx, t_idx],
    }
    for name, values in scores.items():
        data[name] = values[g_idx, t_idx]
    return pd.DataFrame(data)


def _rank(frame: pd.DataFrame, score: str, top_n: Optional[int]) -> pd.DataFrame:
    frame = frame.sort_values(["group", score, "term"], ascending=[True, False, True], kind="mergesort")
    if top_n is not None:
        frame = frame.groupby("group", sort=False).head(top_n)
    return frame.reset_index(drop=True)


def term_counts_by_group(dtm: DocumentTermMatrix, labels: LabelsLike) -> pd.DataFrame:
    """Long frame (group, term, n) of pooled counts, n > 0 only."""
    groups, pooled = _group_term_matrix(dtm, labels)
    return _rank(_long_frame(groups, dtm.vocabulary, pooled), "n", None)


def tf_idf_by_group(
    dtm: DocumentTermMatrix,
    labels: LabelsLike,
    *,
    top_n: Optional[int] = None,
) -> pd.DataFrame:
    """
    Group-level tf-idf.

    Returns
    -------
    pd.DataFrame
        Columns group, term, n, tf, idf, tf_idf; sorted by group then
        tf_idf descending; `top_n` rows per group if given.
    """
    groups, pooled = _group_term_matrix(dtm, labels)
    totals = pooled.sum(axis=1, keepdims=True)
    tf = pooled / totals
    n_containing = (pooled > 0).sum(axis=0)
    idf_row = np.log(len(groups) / np.maximum(n_containing, 1))
    idf = np.broadcast_to(idf_row, pooled.shape)
    frame = _long_frame(groups, dtm.vocabulary, pooled, tf=tf, idf=idf, tf_idf=tf * idf)
    return _rank(frame, "tf_idf", top_n)


def weighted_log_odds(
    dtm: DocumentTermMatrix,
    labels: LabelsLike,
    *,
    top_n: Optional[int] = None,
) -> pd.DataFrame:
    """
    Weighted log-odds ratio of each term in each group versus all other
    groups, using the pooled term counts as the Dirichlet prior.

    For term w and group i, with y the pooled counts, n_i the group total,
    alpha_w the pooled count of w and alpha_0 the corpus total:

        omega_i = (y_wi + alpha_w) / (n_i + alpha_0 - y_wi - alpha_w)
        omega_j = (y_wj + alpha_w) / (n_j + alpha_0 - y_wj - alpha_w)
        delta   = ln omega_i - ln omega_j
        sigma²  = 1 / (y_wi + alpha_w) + 1 / (y_wj + alpha_w)
        score   = delta / sigma

    where j denotes "all other groups".

    Returns
    -------
    pd.DataFrame
        Columns group, term, n, log_odds_weighted; sorted by group then
        score descending; `top_n` rows per group if given.
    """
    groups, pooled = _group_term_matrix(dtm, labels)
    y_wi = pooled.astype(float)
    y_w = y_wi.sum(axis=0, keepdims=True)
    n_i = y_wi.sum(axis=1, keepdims=True)
    n_total = float(y_wi.sum())

    alpha_w = y_w
    alpha_0 = n_total
    y_wj = y_w - y_wi
    n_j = n_total - n_i

    with np.errstate(divide="ignore", invalid="ignore"):
        omega_i = (y_wi + alpha_w) / (n_i + alpha_0 - y_wi - alpha_w)
        omega_j = (y_wj + alpha_w) / (n_j + alpha_0 - y_wj - alpha_w)
        delta = np.log(omega_i) - np.log(omega_j)
        sigma2 = 1.0 / (y_wi + alpha_w) + 1.0 / (y_wj + alpha_w)
        score = delta / np.sqrt(sigma2)

    frame = _long_frame(groups, dtm.vocabulary, pooled, log_odds_weighted=score)
    return _rank(frame, "log_odds_weighted", top_n)
