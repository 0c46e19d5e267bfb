"""
topic_summarizer.py

Human-facing topic summaries for a fitted TopicModel.

For each topic t this module derives:
    * prevalence      : mean of theta[:, t] over documents
    * coherence       : the model's per-topic coherence
    * top_terms       : top-n terms by phi[t, :]
    * exclusive_terms : top-n terms by phi[t, w] / p(w), where
                        p(w) = Σ_t prevalence_t · phi[t, w]
                        (terms concentrated in t rather than frequent everywhere)
    * label           : the first few top terms joined with "_"

Every function here is a pure view of an immutable model. Topic columns are
addressed by integer topic id (0..K-1), never by generated column names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .lda_trainer import TopicModel


# -------------------------------------------------------------------
# Row container
# -------------------------------------------------------------------


@dataclass(frozen=True)
class TopicSummaryRow:
    """
    Summary of a single topic.

    Attributes
    ----------
    topic_id:
        Topic index (0..K-1), the same index used in phi rows and theta
        columns.
    label:
        Top general terms joined with "_"; for identification only.
    prevalence:
        Mean share of the topic over documents.
    coherence:
        Probabilistic coherence of the topic.
    top_terms:
        Most probable terms of the topic.
    exclusive_terms:
        Terms most specific to the topic relative to the corpus.
    """

    topic_id: int
    label: str
    prevalence: float
    coherence: float
    top_terms: Tuple[str, ...]
    exclusive_terms: Tuple[str, ...]


# -------------------------------------------------------------------
# Pure helpers
# -------------------------------------------------------------------


def topic_prevalence(model: TopicModel) -> np.ndarray:
    """(K,) mean of each theta column over documents."""
    return np.asarray(model.theta).mean(axis=0)


def exclusivity_scores(model: TopicModel, prevalence: Optional[np.ndarray] = None) -> np.ndarray:
    """
    (K, V) specificity scores phi[t, w] / p(w).

    p(w) is the marginal term probability under the model,
    Σ_t prevalence_t · phi[t, w]. Terms with p(w) == 0 score 0.
    """
    phi = np.asarray(model.phi)
    if prevalence is None:
        prevalence = topic_prevalence(model)
    marginal = prevalence @ phi
    return np.divide(
        phi,
        marginal[None, :],
        out=np.zeros_like(phi, dtype=float),
        where=marginal[None, :] > 0,
    )


def _top_indices(scores: np.ndarray, n: int) -> np.ndarray:
    # stable → ties keep vocabulary order
    return np.argsort(-scores, kind="stable")[:n]


def document_topic_frame(model: TopicModel) -> pd.DataFrame:
    """Theta as a DataFrame: index = doc_id, columns = topic ids 0..K-1."""
    return pd.DataFrame(
        np.asarray(model.theta),
        index=pd.Index(model.doc_ids, name="doc_id"),
        columns=pd.RangeIndex(model.k, name="topic_id"),
    )


def dominant_topics(model: TopicModel) -> pd.Series:
    """Most probable topic id of each document."""
    theta = np.asarray(model.theta)
    return pd.Series(
        theta.argmax(axis=1),
        index=pd.Index(model.doc_ids, name="doc_id"),
        name="dominant_topic",
    )


def prevalence_by_group(
    model: TopicModel,
    labels: Union[Mapping[str, object], pd.Series],
) -> pd.DataFrame:
    """
    Mean topic share per external document group.

    Parameters
    ----------
    model:
        Fitted model.
    labels:
        doc_id → group label (field, decade, research stream, ...).
        Documents without a label are ignored.

    Returns
    -------
    pd.DataFrame
        index = group label (sorted), columns = topic ids 0..K-1.
    """
    label_series = labels if isinstance(labels, pd.Series) else pd.Series(dict(labels), dtype=object)
    theta_df = document_topic_frame(model)
    joined = theta_df.join(label_series.rename("_group"), how="inner")
    joined = joined.dropna(subset=["_group"])
    if joined.empty:
        raise ValueError("None of the model's documents has a group label.")
    out = joined.groupby("_group", sort=True)[list(theta_df.columns)].mean()
    out.index.name = "group"
    out.columns = pd.RangeIndex(model.k, name="topic_id")
    return out


# -------------------------------------------------------------------
# TopicSummarizer
# -------------------------------------------------------------------


class TopicSummarizer:
    """
    Build one TopicSummaryRow per topic of a fitted model.

    Example
    -------
        summarizer = TopicSummarizer(top_n=10, label_terms=3)
        rows = summarizer.summarize(best_model)
        table = summarizer.summary_frame(best_model)
    """

    def __init__(
        self,
        top_n: int = 10,
        *,
        label_terms: int = 3,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Parameters
        ----------
        top_n:
            Number of general and exclusive terms per topic.
        label_terms:
            Number of top general terms concatenated into the label
            (3–5 is typical).
        log_fn:
            Optional callable receiving progress messages.
        """
        if top_n < 1:
            raise ValueError("top_n must be >= 1.")
        if label_terms < 1:
            raise ValueError("label_terms must be >= 1.")
        self.top_n = top_n
        self.label_terms = label_terms
        self.log_fn = log_fn or (lambda _msg: None)

    def summarize(self, model: TopicModel) -> List[TopicSummaryRow]:
        """
        Summarize every topic of `model`, in topic-id order.
        """
        vocab = model.vocabulary
        phi = np.asarray(model.phi)
        prevalence = topic_prevalence(model)
        exclusivity = exclusivity_scores(model, prevalence)
        n_terms = min(self.top_n, len(vocab))

        rows: List[TopicSummaryRow] = []
        for t in range(model.k):
            top = tuple(vocab[i] for i in _top_indices(phi[t], n_terms))
            exclusive = tuple(vocab[i] for i in _top_indices(exclusivity[t], n_terms))
            rows.append(
                TopicSummaryRow(
                    topic_id=t,
                    label="_".join(top[: self.label_terms]),
                    prevalence=float(prevalence[t]),
                    coherence=float(model.coherence[t]),
                    top_terms=top,
                    exclusive_terms=exclusive,
                )
            )

        self.log_fn(f"[TopicSummarizer] summarized {model.k} topic(s) with top_n={n_terms}.")
        return rows

    def summary_frame(self, model: TopicModel) -> pd.DataFrame:
        """
        Summary table, one row per topic.

        Columns: topic_id, label, prevalence, coherence, top_terms,
        exclusive_terms (term lists joined with ", ").
        """
        rows = self.summarize(model)
        return pd.DataFrame(
            [
                {
                    "topic_id": r.topic_id,
                    "label": r.label,
                    "prevalence": r.prevalence,
                    "coherence": r.coherence,
                    "top_terms": ", ".join(r.top_terms),
                    "exclusive_terms": ", ".join(r.exclusive_terms),
                }
                for r in rows
            ],
            columns=["topic_id", "label", "prevalence", "coherence", "top_terms", "exclusive_terms"],
        )
