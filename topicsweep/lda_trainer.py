"""
lda_trainer.py

Latent Dirichlet Allocation for topicsweep:
- Collapsed Gibbs sampling over a fixed DocumentTermMatrix.
- Symmetric Dirichlet priors (alpha over document-topic, beta over topic-term).
- Fixed iteration budget (no convergence-based early stop), so every model
  of a sweep gets the same compute for a fair coherence comparison.
- Phi/Theta estimated from the final sampler state, or from counts averaged
  over the post-burn-in iterations when `burnin` is set.
- Per-topic probabilistic coherence over the top terms of each topic.

The result is an immutable TopicModel:
    * phi       : (K, V) topic → term probabilities, rows sum to 1
    * theta     : (D, K) document → topic probabilities, rows sum to 1
    * coherence : (K,) per-topic coherence
    * config    : every run-time parameter, for reproducibility
"""

from __future__ import annotations

import time
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .corpus import DocumentTermMatrix
from .errors import DegenerateModelError

# Smoothing for zero co-document counts inside the coherence log ratio
COHERENCE_EPSILON = 1e-12


# ---------------------------------------------------------------------
# TopicModel – immutable fit result
# ---------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class TopicModel:
    """
    A fitted LDA model for one topic count K.

    Attributes
    ----------
    k:
        Number of topics.
    phi:
        (K, V) array; phi[t, w] = P(term w | topic t).
    theta:
        (D, K) array; theta[d, t] = P(topic t | document d).
    coherence:
        (K,) probabilistic coherence of each topic.
    doc_ids:
        Row labels of theta (same order as the DTM).
    vocabulary:
        Column labels of phi (same order as the DTM).
    log_likelihood:
        Log-likelihood of the DTM under phi/theta.
    config:
        Hyperparameters and bookkeeping of the fit (alpha, beta, seed,
        iterations, burnin, coherence_top_n, dtm_fingerprint, elapsed_s).
    """

    k: int
    phi: np.ndarray
    theta: np.ndarray
    coherence: np.ndarray
    doc_ids: Tuple[str, ...]
    vocabulary: Tuple[str, ...]
    log_likelihood: float = float("nan")
    config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._freeze_arrays()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        # unpickled arrays (process workers, ModelStore) come back writeable
        self.__dict__.update(state)
        self._freeze_arrays()

    def _freeze_arrays(self) -> None:
        for arr in (self.phi, self.theta, self.coherence):
            arr.flags.writeable = False

    @property
    def mean_coherence(self) -> float:
        """Aggregate coherence: mean over the K topics."""
        return float(np.mean(self.coherence))

    def top_terms(self, topic: int, n: int = 10) -> List[str]:
        """Top-n terms of a topic by phi (ties broken by column order)."""
        order = np.argsort(-self.phi[topic], kind="stable")[:n]
        return [self.vocabulary[i] for i in order]


# ---------------------------------------------------------------------
# Coherence
# ---------------------------------------------------------------------


def probabilistic_coherence(
    phi: np.ndarray,
    counts: sp.spmatrix,
    theta: Optional[np.ndarray] = None,
    top_n: int = 5,
    epsilon: float = COHERENCE_EPSILON,
) -> np.ndarray:
    """
    Per-topic probabilistic coherence.

    For each topic t take its top-M terms by phi (M = min(top_n, V)). For
    every ordered pair (wi, wj), i != j, compute

        log[ P(wj | wi, t) / P(wj) ]

    The conditional is taken over documents weighted by their share of
    topic t,

        P(wj | wi, t) = (Σ_d θ_dt·1[wi, wj ∈ d] + epsilon) / Σ_d θ_dt·1[wi ∈ d]

    and the marginal over the whole corpus, P(wj) = D(wj) / N, with D(·)
    the number of documents containing the term and N the number of
    documents. The topic score is the mean over all pairs; topics with
    fewer than two terms score 0.0.

    Parameters
    ----------
    phi:
        (K, V) topic-term matrix.
    counts:
        (N, V) document-term counts the model was fit on.
    theta:
        (N, K) document-topic matrix supplying the document weights. If
        None every document has weight 1 and the conditional reduces to
        (D(wi, wj) + epsilon) / D(wi).
    top_n:
        Number of top terms per topic.
    epsilon:
        Smoothing added to co-document mass so disjoint terms stay finite.

    Returns
    -------
    np.ndarray
        (K,) coherence scores.
    """
    n_topics, n_terms = phi.shape
    n_docs = counts.shape[0]
    if theta is not None:
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (n_docs, n_topics):
            raise ValueError(f"theta has shape {theta.shape}, expected {(n_docs, n_topics)}.")

    m = min(int(top_n), n_terms)
    if m < 2:
        return np.zeros(n_topics, dtype=float)

    presence = sp.csc_matrix(counts > 0, dtype=np.float64)
    off_diagonal = ~np.eye(m, dtype=bool)
    scores = np.empty(n_topics, dtype=float)

    for t in range(n_topics):
        top = np.argsort(-phi[t], kind="stable")[:m]
        sub = presence[:, top].toarray()          # (N, M)
        weights = np.ones(n_docs) if theta is None else theta[:, t]

        weighted = sub * weights[:, None]
        co_mass = weighted.T @ sub                # Σ_d θ_dt·1[wi, wj ∈ d]
        wi_mass = weighted.sum(axis=0)            # Σ_d θ_dt·1[wi ∈ d]

        with np.errstate(divide="ignore", invalid="ignore"):
            p_cond = (co_mass + epsilon) / wi_mass[:, None]
            p_marg = sub.sum(axis=0) / n_docs
            log_ratio = np.log(p_cond / p_marg[None, :])
        scores[t] = float(log_ratio[off_diagonal].mean())

    return scores


# ---------------------------------------------------------------------
# LdaTrainer – collapsed Gibbs sampling
# ---------------------------------------------------------------------


class LdaTrainer:
    """
    Collapsed Gibbs sampling LDA.

    Responsibilities
    ----------------
    - Expand the DTM into a token stream (row-major: document by document,
      term columns in vocabulary order, repeated by count).
    - Randomly initialize topic assignments from the seed.
    - Resample every token `iterations` times from its full conditional
          p(z=t | ·) ∝ (n_dt + alpha) · (n_tw + beta) / (n_t + V·beta)
    - Estimate phi/theta, compute coherence and log-likelihood.
    - Refuse to return a model containing NaN/Inf.

    K is required to be >= 1. K larger than the number of documents is
    allowed but rarely sensible; it is not rejected.
    """

    def __init__(
        self,
        alpha: float = 0.1,
        beta: float = 0.05,
        *,
        coherence_top_n: int = 5,
        burnin: int = -1,
        log_every: int = 0,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Parameters
        ----------
        alpha:
            Symmetric Dirichlet prior on document-topic distributions.
        beta:
            Symmetric Dirichlet prior on topic-term distributions.
        coherence_top_n:
            Number of top terms per topic used for coherence.
        burnin:
            If 0 <= burnin < iterations, counts of the iterations after
            `burnin` are averaged to estimate phi/theta. A negative value
            (default) uses the final sampler state only.
        log_every:
            If > 0, log progress every `log_every` iterations.
        log_fn:
            Optional callable receiving progress messages. It is not carried
            across process boundaries.
        """
        if alpha <= 0 or beta <= 0:
            raise ValueError("alpha and beta must be > 0.")
        if coherence_top_n < 1:
            raise ValueError("coherence_top_n must be >= 1.")

        self.alpha = float(alpha)
        self.beta = float(beta)
        self.coherence_top_n = int(coherence_top_n)
        self.burnin = int(burnin)
        self.log_every = int(log_every)
        self.log_fn = log_fn

    def __getstate__(self) -> Dict[str, Any]:
        state = self.__dict__.copy()
        state["log_fn"] = None
        return state

    def _log(self, message: str) -> None:
        if self.log_fn is not None:
            self.log_fn(message)

    @property
    def params(self) -> Dict[str, Any]:
        """Hyperparameters that change the fitted model (used for cache keys)."""
        return {
            "trainer": type(self).__name__,
            "alpha": self.alpha,
            "beta": self.beta,
            "coherence_top_n": self.coherence_top_n,
            "burnin": self.burnin,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fit(
        self,
        dtm: DocumentTermMatrix,
        k: int,
        iterations: int = 200,
        seed: int = 42,
    ) -> TopicModel:
        """
        Fit one LDA model.

        Parameters
        ----------
        dtm:
            Document-term matrix (read only).
        k:
            Number of topics (>= 1).
        iterations:
            Number of full Gibbs sweeps over the token stream (>= 1).
        seed:
            Seed of the sampler's random stream. Same DTM + K + seed gives
            identical phi/theta.

        Returns
        -------
        TopicModel

        Raises
        ------
        ValueError
            If k or iterations are not positive.
        DegenerateModelError
            If phi, theta or coherence contain NaN/Inf.
        """
        k = int(k)
        iterations = int(iterations)
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}.")
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}.")

        started = time.perf_counter()
        counts = sp.csr_matrix(dtm.counts)
        n_docs, n_terms = counts.shape
        doc_of_token, word_of_token = self._expand_tokens(counts)
        n_tokens = doc_of_token.size

        self._log(
            f"[LdaTrainer] K={k}: sampling {n_tokens} tokens "
            f"({n_docs} docs × {n_terms} terms) for {iterations} iterations..."
        )

        rng = np.random.default_rng(seed)

        # --------------------------------------------------------------
        # 1. Random initialization
        # --------------------------------------------------------------
        z = rng.integers(0, k, size=n_tokens)
        n_dt = np.zeros((n_docs, k), dtype=np.int64)
        n_wt = np.zeros((n_terms, k), dtype=np.int64)
        np.add.at(n_dt, (doc_of_token, z), 1)
        np.add.at(n_wt, (word_of_token, z), 1)
        n_t = n_wt.sum(axis=0)

        accumulate = 0 <= self.burnin < iterations
        sum_dt = np.zeros((n_docs, k), dtype=np.float64) if accumulate else None
        sum_wt = np.zeros((n_terms, k), dtype=np.float64) if accumulate else None
        n_samples = 0

        # --------------------------------------------------------------
        # 2. Gibbs sweeps
        # --------------------------------------------------------------
        # Sampler state as plain lists; counts are converted back below.
        alpha, beta = self.alpha, self.beta
        v_beta = n_terms * beta
        docs_list = doc_of_token.tolist()
        words_list = word_of_token.tolist()
        z_list = z.tolist()
        dt = n_dt.tolist()
        wt = n_wt.tolist()
        tt = n_t.tolist()
        topics = range(k)
        cumulative = [0.0] * k

        for it in range(iterations):
            uniforms = rng.random(n_tokens).tolist()
            for i in range(n_tokens):
                row_d = dt[docs_list[i]]
                row_w = wt[words_list[i]]
                t = z_list[i]

                row_d[t] -= 1
                row_w[t] -= 1
                tt[t] -= 1

                total = 0.0
                for j in topics:
                    total += (row_d[j] + alpha) * (row_w[j] + beta) / (tt[j] + v_beta)
                    cumulative[j] = total
                t = bisect_right(cumulative, uniforms[i] * total)
                if t >= k:
                    t = k - 1

                z_list[i] = t
                row_d[t] += 1
                row_w[t] += 1
                tt[t] += 1

            if accumulate and it >= self.burnin:
                sum_dt += np.asarray(dt, dtype=np.float64)
                sum_wt += np.asarray(wt, dtype=np.float64)
                n_samples += 1

            if self.log_every > 0 and (it + 1) % self.log_every == 0:
                self._log(f"[LdaTrainer] K={k}: iteration {it + 1}/{iterations}")

        # --------------------------------------------------------------
        # 3. Posterior estimates
        # --------------------------------------------------------------
        if accumulate and n_samples > 0:
            est_dt = sum_dt / n_samples
            est_wt = sum_wt / n_samples
        else:
            est_dt = np.asarray(dt, dtype=np.float64)
            est_wt = np.asarray(wt, dtype=np.float64)

        phi = est_wt.T + beta
        phi /= phi.sum(axis=1, keepdims=True)
        theta = est_dt + alpha
        theta /= theta.sum(axis=1, keepdims=True)

        self._check_finite(phi, "phi", k)
        self._check_finite(theta, "theta", k)

        coherence = probabilistic_coherence(phi, counts, theta, top_n=self.coherence_top_n)
        self._check_finite(coherence, "coherence", k)

        log_likelihood = self._log_likelihood(counts, phi, theta)
        elapsed = time.perf_counter() - started

        config = dict(self.params)
        config.update(
            {
                "k": k,
                "iterations": iterations,
                "seed": seed,
                "num_documents": n_docs,
                "num_terms": n_terms,
                "num_tokens": n_tokens,
                "posterior_samples": n_samples if accumulate else 1,
                "dtm_fingerprint": dtm.fingerprint,
                "elapsed_s": elapsed,
            }
        )

        model = TopicModel(
            k=k,
            phi=phi,
            theta=theta,
            coherence=coherence,
            doc_ids=tuple(dtm.doc_ids),
            vocabulary=tuple(dtm.vocabulary),
            log_likelihood=log_likelihood,
            config=config,
        )
        self._log(
            f"[LdaTrainer] ✅ K={k}: mean coherence {model.mean_coherence:.4f}, "
            f"log-likelihood {log_likelihood:.1f} ({elapsed:.1f}s)."
        )
        return model

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _expand_tokens(counts: sp.csr_matrix) -> Tuple[np.ndarray, np.ndarray]:
        """Token stream (doc index, term index) in row-major order."""
        n_docs = counts.shape[0]
        nnz_per_row = np.diff(counts.indptr)
        doc_of_entry = np.repeat(np.arange(n_docs, dtype=np.int64), nnz_per_row)
        repeats = counts.data.astype(np.int64)
        return (
            np.repeat(doc_of_entry, repeats),
            np.repeat(counts.indices.astype(np.int64), repeats),
        )

    @staticmethod
    def _log_likelihood(counts: sp.csr_matrix, phi: np.ndarray, theta: np.ndarray) -> float:
        coo = counts.tocoo()
        p = np.einsum("ij,ji->i", theta[coo.row], phi[:, coo.col])
        with np.errstate(divide="ignore"):
            return float(np.sum(coo.data * np.log(p)))

    @staticmethod
    def _check_finite(arr: np.ndarray, name: str, k: int) -> None:
        if not np.all(np.isfinite(arr)):
            n_bad = int(np.size(arr) - np.count_nonzero(np.isfinite(arr)))
            raise DegenerateModelError(
                f"{name} contains {n_bad} non-finite value(s); "
                "K is probably too large for this corpus.",
                k=k,
            )
