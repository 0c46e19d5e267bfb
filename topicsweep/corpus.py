"""
corpus.py

Vocabulary & document-term matrix (DTM) construction for topicsweep.

- Takes cleaned documents (doc_id + ordered tokens) from any preprocessor.
- Builds unigram/bigram terms inside each document (never across documents).
- Applies n-gram-aware minimum corpus counts.
- Produces an immutable DocumentTermMatrix:
    * doc_ids        : row order
    * vocabulary     : column order, **lexicographic** over surviving terms
    * counts         : scipy.sparse CSR matrix of int64 counts
    * dropped_doc_ids: documents excluded because no term survived
    * fingerprint    : sha256 over ids, vocabulary and counts

The DTM is the only input to every LDA fit of a sweep; it never changes
during the sweep, which keeps every model of the sweep comparable.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from functools import partial
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np
import pandas as pd
import scipy.sparse as sp
from sklearn.feature_extraction.text import CountVectorizer

from .errors import EmptyCorpusError


# ---------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Document:
    """
    A cleaned document.

    Attributes
    ----------
    doc_id:
        Unique identifier (e.g. a citation key or DOI).
    tokens:
        Ordered surface tokens after stop-word/numeral removal and plural
        normalization.
    """

    doc_id: str
    tokens: Tuple[str, ...]


@dataclass(frozen=True, eq=False)
class DocumentTermMatrix:
    """
    Immutable sparse document × term count matrix.

    Attributes
    ----------
    doc_ids:
        Row labels, in input order (dropped documents removed).
    vocabulary:
        Column labels. Bigrams are the two tokens joined by one space.
    counts:
        CSR matrix of shape (len(doc_ids), len(vocabulary)); every row
        sum is > 0.
    dropped_doc_ids:
        Documents excluded because they had no surviving term.
    config:
        Parameters used to build the matrix.
    """

    doc_ids: Tuple[str, ...]
    vocabulary: Tuple[str, ...]
    counts: sp.csr_matrix
    dropped_doc_ids: Tuple[str, ...] = ()
    config: Dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        n_docs, n_terms = self.counts.shape
        if n_docs != len(self.doc_ids) or n_terms != len(self.vocabulary):
            raise ValueError(
                f"counts has shape {self.counts.shape} but there are "
                f"{len(self.doc_ids)} doc_ids and {len(self.vocabulary)} terms."
            )

    # -------------------------- shape helpers --------------------------

    @property
    def n_documents(self) -> int:
        return len(self.doc_ids)

    @property
    def n_terms(self) -> int:
        return len(self.vocabulary)

    @property
    def n_tokens(self) -> int:
        return int(self.counts.sum())

    @property
    def term_index(self) -> Dict[str, int]:
        """term → column index."""
        return {term: i for i, term in enumerate(self.vocabulary)}

    @property
    def doc_index(self) -> Dict[str, int]:
        """doc_id → row index."""
        return {doc_id: i for i, doc_id in enumerate(self.doc_ids)}

    @property
    def fingerprint(self) -> str:
        """Content hash used to key cached models."""
        h = hashlib.sha256()
        h.update("\x1f".join(self.doc_ids).encode("utf-8"))
        h.update(b"\x1e")
        h.update("\x1f".join(self.vocabulary).encode("utf-8"))
        h.update(b"\x1e")
        for arr in (self.counts.indptr, self.counts.indices, self.counts.data):
            h.update(np.ascontiguousarray(arr, dtype=np.int64).tobytes())
        return h.hexdigest()

    # -------------------------- views --------------------------

    def row(self, doc_id: str) -> np.ndarray:
        """Dense count vector for one document."""
        try:
            i = self.doc_ids.index(doc_id)
        except ValueError as e:
            raise KeyError(f"Unknown doc_id {doc_id!r}.") from e
        return self.counts.getrow(i).toarray().ravel()

    def term_totals(self) -> np.ndarray:
        """Corpus count per term (aligned with `vocabulary`)."""
        return np.asarray(self.counts.sum(axis=0)).ravel()

    def document_frequency(self) -> np.ndarray:
        """Number of documents containing each term."""
        return np.asarray((self.counts > 0).sum(axis=0)).ravel()

    def to_frame(self) -> pd.DataFrame:
        """Dense DataFrame view (rows = doc_ids, columns = vocabulary)."""
        return pd.DataFrame(
            self.counts.toarray(),
            index=pd.Index(self.doc_ids, name="doc_id"),
            columns=list(self.vocabulary),
        )


# ---------------------------------------------------------------------
# n-gram analyzer (module level so it stays picklable)
# ---------------------------------------------------------------------


def _ngram_analyzer(tokens: Sequence[str], ngram_range: Tuple[int, int]) -> List[str]:
    """Adjacent-token n-grams of one document, for n in ngram_range."""
    min_n, max_n = ngram_range
    terms: List[str] = []
    n_tokens = len(tokens)
    for n in range(min_n, max_n + 1):
        for i in range(n_tokens - n + 1):
            terms.append(" ".join(tokens[i : i + n]))
    return terms


DocumentsLike = Union[
    Mapping[str, Sequence[str]],
    Iterable[Document],
    Iterable[Tuple[str, Sequence[str]]],
]


# ---------------------------------------------------------------------
# DtmBuilder
# ---------------------------------------------------------------------


class DtmBuilder:
    """
    Build a DocumentTermMatrix from cleaned documents.

    Vocabulary ordering rule: lexicographic (Python string order) over the
    terms that survive the count thresholds. This keeps column indices
    reproducible regardless of document order.
    """

    def __init__(
        self,
        ngram_range: Tuple[int, int] = (1, 2),
        *,
        min_term_count_unigram: int = 1,
        min_term_count_bigram: int = 1,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Parameters
        ----------
        ngram_range:
            Inclusive (min_n, max_n) window, e.g. (1, 2) for unigrams and
            bigrams or (1, 1) for unigrams only.
        min_term_count_unigram, min_term_count_bigram:
            Minimum corpus count for 1-word and ≥2-word terms. The defaults
            keep every observed term.
        log_fn:
            Optional callable receiving progress messages.
        """
        min_n, max_n = ngram_range
        if min_n < 1 or max_n < min_n:
            raise ValueError(f"Invalid ngram_range={ngram_range!r}; need 1 <= min_n <= max_n.")
        if min_term_count_unigram < 1 or min_term_count_bigram < 1:
            raise ValueError("min_term_count_* must be >= 1.")

        self.ngram_range = (int(min_n), int(max_n))
        self.min_term_count_unigram = min_term_count_unigram
        self.min_term_count_bigram = min_term_count_bigram
        self.log_fn = log_fn or (lambda _msg: None)

    def build(self, documents: DocumentsLike) -> DocumentTermMatrix:
        """
        Build the vocabulary and sparse count matrix.

        Parameters
        ----------
        documents:
            Documents as `Document` objects, (doc_id, tokens) pairs, or a
            mapping doc_id → tokens. Ids must be unique.

        Returns
        -------
        DocumentTermMatrix

        Raises
        ------
        EmptyCorpusError
            If no document yields any vocabulary term.
        ValueError
            On duplicate document ids.
        """
        docs = list(self._iter_documents(documents))
        if not docs:
            raise EmptyCorpusError("No documents were supplied.")

        seen = set()
        for doc in docs:
            if doc.doc_id in seen:
                raise ValueError(f"Duplicate doc_id {doc.doc_id!r}; deduplicate before building the DTM.")
            seen.add(doc.doc_id)

        self.log_fn(f"[DtmBuilder] counting {self.ngram_range} n-grams over {len(docs)} documents...")

        vectorizer = CountVectorizer(
            analyzer=partial(_ngram_analyzer, ngram_range=self.ngram_range),
            lowercase=False,
            dtype=np.int64,
        )
        try:
            counts = vectorizer.fit_transform([doc.tokens for doc in docs])
        except ValueError as e:
            # sklearn raises "empty vocabulary" when every document is empty
            raise EmptyCorpusError(
                "No document yields any vocabulary term after cleaning."
            ) from e

        vocabulary = np.asarray(vectorizer.get_feature_names_out(), dtype=object)
        counts = sp.csr_matrix(counts, dtype=np.int64)

        # --------------------------------------------------------------
        # n-gram-aware count thresholds
        # --------------------------------------------------------------
        totals = np.asarray(counts.sum(axis=0)).ravel()
        n_words = np.fromiter((term.count(" ") + 1 for term in vocabulary), dtype=np.int64, count=len(vocabulary))
        thresholds = np.where(n_words == 1, self.min_term_count_unigram, self.min_term_count_bigram)
        keep_terms = totals >= thresholds

        if not keep_terms.any():
            raise EmptyCorpusError(
                "All terms were filtered out by min_term_count_* thresholds. "
                "Consider lowering them."
            )

        counts = counts[:, np.flatnonzero(keep_terms)]
        vocabulary = vocabulary[keep_terms]

        # --------------------------------------------------------------
        # Drop empty documents (flagged, never silently kept)
        # --------------------------------------------------------------
        row_sums = np.asarray(counts.sum(axis=1)).ravel()
        keep_rows = row_sums > 0
        dropped = tuple(doc.doc_id for doc, keep in zip(docs, keep_rows) if not keep)
        if dropped:
            self.log_fn(f"[DtmBuilder]   → dropping {len(dropped)} empty document(s): {list(dropped)}")

        counts = sp.csr_matrix(counts[np.flatnonzero(keep_rows)])
        counts.sort_indices()
        doc_ids = tuple(doc.doc_id for doc, keep in zip(docs, keep_rows) if keep)

        config = {
            "ngram_range": self.ngram_range,
            "min_term_count_unigram": self.min_term_count_unigram,
            "min_term_count_bigram": self.min_term_count_bigram,
            "vocabulary_order": "lexicographic",
            "num_input_documents": len(docs),
        }

        self.log_fn(f"[DtmBuilder] ✅ DTM with {len(doc_ids)} documents × {len(vocabulary)} terms.")
        return DocumentTermMatrix(
            doc_ids=doc_ids,
            vocabulary=tuple(str(t) for t in vocabulary),
            counts=counts,
            dropped_doc_ids=dropped,
            config=config,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _iter_documents(documents: DocumentsLike) -> Iterator[Document]:
        if isinstance(documents, Mapping):
            for doc_id, tokens in documents.items():
                yield Document(doc_id=str(doc_id), tokens=tuple(tokens))
            return
        for item in documents:
            if isinstance(item, Document):
                yield Document(doc_id=item.doc_id, tokens=tuple(item.tokens))
            else:
                doc_id, tokens = item
                yield Document(doc_id=str(doc_id), tokens=tuple(tokens))


def build_dtm(
    documents: DocumentsLike,
    ngram_range: Tuple[int, int] = (1, 2),
    **kwargs,
) -> DocumentTermMatrix:
    """Convenience wrapper around `DtmBuilder(...).build(documents)`."""
    return DtmBuilder(ngram_range, **kwargs).build(documents)
