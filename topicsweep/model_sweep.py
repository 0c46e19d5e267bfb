"""
model_sweep.py

Model sweep controller for topicsweep:
- Trains one LDA model per K over a shared, read-only DocumentTermMatrix.
- Dispatches the independent K runs to an explicit SweepWorkerPool
  (process, thread, or serial backend) owned by the caller.
- Seeds every K deterministically from (base_seed, K), so results do not
  depend on worker count or completion order.
- Records per-K failures, timeouts and cancellations instead of aborting
  the sweep; the sweep only fails if no K produced a valid model.
- Re-sorts results by K and exposes the coherence-vs-K series.
- Best-model selection is a separate, explicit step (`select_best`) so the
  coherence series can be inspected first.
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Literal,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np
import pandas as pd

from .corpus import DocumentTermMatrix
from .errors import EmptySweepError, SweepFailedError
from .lda_trainer import LdaTrainer, TopicModel

SweepStatus = Literal["ok", "failed", "timeout", "cancelled"]


# ---------------------------------------------------------------------
# Dataclasses for sweep results
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class SweepEntry:
    """
    Outcome of one K run.

    Attributes
    ----------
    k:
        Number of topics attempted.
    status:
        "ok", "failed", "timeout" or "cancelled".
    model:
        The fitted TopicModel (None unless status == "ok", or after the
        model has been discarded).
    mean_coherence:
        Mean topic coherence (None unless status == "ok").
    error:
        Human-readable diagnostic for non-ok runs.
    seed:
        Seed derived for this K.
    elapsed_s:
        Wall time of the fit (0.0 for runs that never finished).
    cached:
        True if the model was loaded from a ModelStore instead of trained.
    """

    k: int
    status: SweepStatus
    model: Optional[TopicModel] = None
    mean_coherence: Optional[float] = None
    error: Optional[str] = None
    seed: Optional[int] = None
    elapsed_s: float = 0.0
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True)
class SweepResult:
    """
    Ordered collection of SweepEntry objects, one per attempted K.

    `entries` is always sorted by K, whatever order the runs finished in.
    """

    entries: Tuple[SweepEntry, ...]
    iterations: int
    config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(sorted(self.entries, key=lambda e: e.k)))

    @property
    def k_values(self) -> List[int]:
        return [e.k for e in self.entries]

    def successful(self) -> List[SweepEntry]:
        return [e for e in self.entries if e.ok]

    def failures(self) -> List[SweepEntry]:
        return [e for e in self.entries if not e.ok]

    def get(self, k: int) -> SweepEntry:
        for entry in self.entries:
            if entry.k == k:
                return entry
        raise KeyError(f"K={k} was not part of this sweep.")

    def models(self) -> Dict[int, TopicModel]:
        """K → model for every entry that still holds a model."""
        return {e.k: e.model for e in self.entries if e.model is not None}

    def coherence_by_k(self) -> pd.DataFrame:
        """
        Coherence-vs-K series (one row per attempted K, sorted by K).

        Columns: k, mean_coherence, status, error, seed, elapsed_s, cached.
        Failed runs have NaN mean_coherence.
        """
        rows = [
            {
                "k": e.k,
                "mean_coherence": np.nan if e.mean_coherence is None else e.mean_coherence,
                "status": e.status,
                "error": e.error,
                "seed": e.seed,
                "elapsed_s": e.elapsed_s,
                "cached": e.cached,
            }
            for e in self.entries
        ]
        return pd.DataFrame(
            rows,
            columns=["k", "mean_coherence", "status", "error", "seed", "elapsed_s", "cached"],
        )

    def discard_except(self, k: int) -> "SweepResult":
        """
        Copy of this result that keeps only the model of K=`k`.

        Coherence scalars of every run are retained for reporting.
        """
        self.get(k)
        entries = tuple(e if e.k == k else replace(e, model=None) for e in self.entries)
        return SweepResult(entries=entries, iterations=self.iterations, config=dict(self.config))


def select_best(result: SweepResult) -> TopicModel:
    """
    Pick the model with the highest mean coherence among successful runs.

    Ties are resolved to the smaller K (simpler model).

    Raises
    ------
    SweepFailedError
        If no successful run holds a model.
    """
    candidates = [e for e in result.entries if e.ok and e.model is not None]
    if not candidates:
        raise SweepFailedError("No successful model available for selection.", result=result)
    best = min(candidates, key=lambda e: (-float(e.mean_coherence), e.k))
    return best.model


def derive_seed(base_seed: int, k: int) -> int:
    """Deterministic per-K seed derived from the sweep's base seed."""
    if base_seed < 0:
        raise ValueError("base_seed must be >= 0.")
    return int(np.random.SeedSequence([int(base_seed), int(k)]).generate_state(1)[0])


# ---------------------------------------------------------------------
# Worker pool
# ---------------------------------------------------------------------


class SweepWorkerPool:
    """
    Explicit worker pool for sweep runs.

    The caller owns the lifecycle: create (or `with`) before the sweep,
    shut down after. There is no process-global parallel state.

    Backends
    --------
    - "process": ProcessPoolExecutor, one process per worker (default).
    - "thread" : ThreadPoolExecutor (useful when fits release the GIL
                 or for in-process tests with custom trainers).
    - "serial" : runs each task at submission time in the caller's thread.
    """

    def __init__(
        self,
        n_workers: Optional[int] = None,
        backend: Literal["process", "thread", "serial"] = "process",
    ) -> None:
        if backend not in {"process", "thread", "serial"}:
            raise ValueError("backend must be 'process', 'thread' or 'serial'.")
        if n_workers is not None and n_workers < 1:
            raise ValueError("n_workers must be >= 1.")

        self.backend = backend
        self.n_workers = int(n_workers or os.cpu_count() or 1)
        self._executor: Optional[Executor] = None
        self._closed = False

    # ----------------------------- lifecycle -----------------------------

    def start(self) -> "SweepWorkerPool":
        if self._closed:
            raise RuntimeError("SweepWorkerPool has been shut down and cannot be restarted.")
        if self._executor is None and self.backend != "serial":
            if self.backend == "process":
                self._executor = ProcessPoolExecutor(max_workers=self.n_workers)
            else:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.n_workers,
                    thread_name_prefix="topicsweep",
                )
        return self

    def shutdown(self, wait: bool = True, cancel_pending: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)
            self._executor = None
        self._closed = True

    @property
    def is_running(self) -> bool:
        return not self._closed and (self.backend == "serial" or self._executor is not None)

    def __enter__(self) -> "SweepWorkerPool":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    # ----------------------------- tasks -----------------------------

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if not self.is_running:
            raise RuntimeError("SweepWorkerPool is not running; call start() or use it as a context manager.")

        if self._executor is not None:
            return self._executor.submit(fn, *args)

        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            future.set_exception(exc)
        return future


def _fit_one(
    trainer: LdaTrainer,
    dtm: DocumentTermMatrix,
    k: int,
    iterations: int,
    seed: int,
) -> Tuple[TopicModel, float]:
    """Worker entry point: one independent fit (module level so it pickles)."""
    started = time.perf_counter()
    model = trainer.fit(dtm, k, iterations, seed)
    return model, time.perf_counter() - started


# ---------------------------------------------------------------------
# ModelSweeper – sweep controller
# ---------------------------------------------------------------------


class ModelSweeper:
    """
    Run an LdaTrainer across an ordered set of topic counts.

    Responsibilities
    ----------------
    - Validate the K values (non-empty, positive, unique).
    - Reuse cached models from an optional ModelStore.
    - Submit one independent fit per K to the worker pool.
    - Convert exceptions, timeouts and cancellation into per-K entries.
    - Return a SweepResult sorted by K.

    The sweeper never selects a model on its own; call `select_best`.
    """

    def __init__(
        self,
        trainer: Optional[LdaTrainer] = None,
        *,
        pool: Optional[SweepWorkerPool] = None,
        base_seed: int = 42,
        k_timeout: Optional[float] = None,
        store: Optional[Any] = None,
        poll_interval: float = 0.05,
        logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Parameters
        ----------
        trainer:
            Trainer used for every K (default: LdaTrainer()).
        pool:
            Worker pool owned by the caller. If None, each sweep creates a
            private serial pool.
        base_seed:
            Base seed; the seed of each K is `derive_seed(base_seed, k)`.
        k_timeout:
            Optional per-K wall-time limit in seconds. The sweeper keeps at
            most `pool.n_workers` runs in flight, so a run is timed from its
            submission. Exceeding the limit records a "timeout" entry and
            the sweep continues; the worker keeps its slot until the
            abandoned fit returns.
        store:
            Optional ModelStore used to load/save fitted models.
        poll_interval:
            How often (seconds) pending runs are checked for timeout and
            cancellation.
        logger:
            Optional logging callback used when `verbose=True` in
            :meth:`sweep`. Falls back to `print`.
        """
        if k_timeout is not None and k_timeout <= 0:
            raise ValueError("k_timeout must be > 0 when given.")

        self.trainer = trainer if trainer is not None else LdaTrainer()
        self.pool = pool
        self.base_seed = int(base_seed)
        self.k_timeout = k_timeout
        self.store = store
        self.poll_interval = float(poll_interval)
        self.logger = logger

    def _log(self, message: str, verbose: bool = True) -> None:
        if not verbose:
            return
        if self.logger is not None:
            self.logger(message)
        else:
            print(message)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def sweep(
        self,
        dtm: DocumentTermMatrix,
        k_values: Sequence[int],
        iterations: int = 200,
        *,
        cancel_event: Optional[threading.Event] = None,
        verbose: bool = False,
    ) -> SweepResult:
        """
        Train one model per K and collect the outcomes.

        Parameters
        ----------
        dtm:
            Shared, read-only document-term matrix.
        k_values:
            Topic counts to try (order is irrelevant to the result).
        iterations:
            Gibbs iterations per model; identical for every K.
        cancel_event:
            If set while the sweep runs, pending K values are abandoned and
            recorded as "cancelled"; completed entries are kept as is.
        verbose:
            If True, log progress via the configured logger.

        Returns
        -------
        SweepResult
            One entry per K, sorted by K.

        Raises
        ------
        EmptySweepError
            If `k_values` is empty.
        ValueError
            If a K is non-positive or repeated.
        SweepFailedError
            If no K produced a valid model (the result is attached).
        """
        ks = [int(k) for k in k_values]
        if not ks:
            raise EmptySweepError("k_values is empty; nothing to sweep.")
        if any(k < 1 for k in ks):
            raise ValueError(f"All K values must be >= 1, got {ks}.")
        if len(set(ks)) != len(ks):
            raise ValueError(f"K values must be unique, got {ks}.")

        owns_pool = self.pool is None
        pool = SweepWorkerPool(n_workers=1, backend="serial") if owns_pool else self.pool
        if owns_pool:
            pool.start()
        elif not pool.is_running:
            raise RuntimeError("The supplied SweepWorkerPool is not running.")

        self._log(
            f"[ModelSweeper] Sweeping K={sorted(ks)} with {iterations} iterations "
            f"on {pool.backend} pool ({pool.n_workers} worker(s))...",
            verbose,
        )

        started = time.perf_counter()
        entries: Dict[int, SweepEntry] = {}
        seeds = {k: derive_seed(self.base_seed, k) for k in ks}

        try:
            # ----------------------------------------------------------
            # 1. Cached models
            # ----------------------------------------------------------
            to_train: List[int] = []
            for k in ks:
                cached = self._load_cached(dtm, k, iterations, seeds[k])
                if cached is not None:
                    entries[k] = SweepEntry(
                        k=k,
                        status="ok",
                        model=cached,
                        mean_coherence=cached.mean_coherence,
                        seed=seeds[k],
                        cached=True,
                    )
                    self._log(f"[ModelSweeper]   → K={k} loaded from store.", verbose)
                else:
                    to_train.append(k)

            # ----------------------------------------------------------
            # 2. Submit (at most one run per worker in flight) and
            #    collect out of order, enforcing timeout/cancellation
            # ----------------------------------------------------------
            queue: List[int] = list(to_train)
            pending: Dict[Future, int] = {}
            submitted_at: Dict[Future, float] = {}
            # timed-out runs that still occupy a worker
            abandoned: List[Future] = []

            while queue or pending:
                if cancel_event is not None and cancel_event.is_set():
                    for k in queue:
                        entries[k] = self._cancelled_entry(k, seeds[k])
                    queue.clear()
                    for future, k in list(pending.items()):
                        if future.done():
                            entries[k] = self._entry_from_future(k, seeds[k], future, verbose)
                        else:
                            future.cancel()
                            entries[k] = self._cancelled_entry(k, seeds[k])
                    pending.clear()
                    self._log("[ModelSweeper] Sweep cancelled; pending K values abandoned.", verbose)
                    break

                abandoned = [f for f in abandoned if not f.done()]
                while queue and len(pending) + len(abandoned) < pool.n_workers:
                    k = queue.pop(0)
                    future = pool.submit(_fit_one, self.trainer, dtm, k, iterations, seeds[k])
                    pending[future] = k
                    submitted_at[future] = time.monotonic()

                done, _ = wait(
                    list(pending) + abandoned,
                    timeout=self.poll_interval,
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    if future in pending:
                        k = pending.pop(future)
                        entries[k] = self._entry_from_future(k, seeds[k], future, verbose)

                if self.k_timeout is None:
                    continue
                now = time.monotonic()
                for future, k in list(pending.items()):
                    waited = now - submitted_at[future]
                    if waited > self.k_timeout:
                        future.cancel()
                        pending.pop(future)
                        abandoned.append(future)
                        entries[k] = SweepEntry(
                            k=k,
                            status="timeout",
                            error=f"K={k}: fit exceeded k_timeout={self.k_timeout}s.",
                            seed=seeds[k],
                            elapsed_s=waited,
                        )
                        self._log(f"[ModelSweeper]   ⚠ K={k} timed out.", verbose)
        finally:
            if owns_pool:
                pool.shutdown()

        # --------------------------------------------------------------
        # 4. Store new models, assemble result
        # --------------------------------------------------------------
        for entry in list(entries.values()):
            if entry.ok and not entry.cached:
                entry = self._enforce_timeout(entry)
                entries[entry.k] = entry
                if entry.ok and self.store is not None:
                    self.store.save_model(entry.model, dtm=dtm, trainer_params=self.trainer.params)

        config = {
            "k_values": sorted(ks),
            "iterations": iterations,
            "base_seed": self.base_seed,
            "seeds": {k: seeds[k] for k in sorted(ks)},
            "k_timeout": self.k_timeout,
            "backend": pool.backend,
            "n_workers": pool.n_workers,
            "trainer_params": self.trainer.params,
            "dtm_fingerprint": dtm.fingerprint,
            "elapsed_s": time.perf_counter() - started,
        }
        result = SweepResult(entries=tuple(entries.values()), iterations=iterations, config=config)

        n_ok = len(result.successful())
        self._log(f"[ModelSweeper] ✅ {n_ok}/{len(ks)} K value(s) succeeded.", verbose)
        if n_ok == 0:
            raise SweepFailedError(
                "Every K value of the sweep failed: "
                + "; ".join(f"K={e.k} {e.status}: {e.error}" for e in result.entries),
                result=result,
            )
        return result

    def select_best(self, result: SweepResult) -> TopicModel:
        """Same as the module-level `select_best`."""
        return select_best(result)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _entry_from_future(self, k: int, seed: int, future: Future, verbose: bool) -> SweepEntry:
        if future.cancelled():
            return self._cancelled_entry(k, seed)
        exc = future.exception()
        if exc is not None:
            self._log(f"[ModelSweeper]   ⚠ K={k} failed: {type(exc).__name__}: {exc}", verbose)
            return SweepEntry(
                k=k,
                status="failed",
                error=f"{type(exc).__name__}: {exc}",
                seed=seed,
            )
        model, elapsed = future.result()
        self._log(
            f"[ModelSweeper]   → K={k} done: mean coherence {model.mean_coherence:.4f} ({elapsed:.1f}s).",
            verbose,
        )
        return SweepEntry(
            k=k,
            status="ok",
            model=model,
            mean_coherence=model.mean_coherence,
            seed=seed,
            elapsed_s=elapsed,
        )

    def _enforce_timeout(self, entry: SweepEntry) -> SweepEntry:
        """A finished run that still exceeded k_timeout (serial pools) is a timeout."""
        if self.k_timeout is not None and entry.elapsed_s > self.k_timeout:
            return replace(
                entry,
                status="timeout",
                model=None,
                mean_coherence=None,
                error=f"K={entry.k}: fit took {entry.elapsed_s:.1f}s > k_timeout={self.k_timeout}s.",
            )
        return entry

    @staticmethod
    def _cancelled_entry(k: int, seed: int) -> SweepEntry:
        return SweepEntry(k=k, status="cancelled", error=f"K={k}: cancelled before completion.", seed=seed)

    def _load_cached(self, dtm: DocumentTermMatrix, k: int, iterations: int, seed: int) -> Optional[TopicModel]:
        if self.store is None:
            return None
        return self.store.get_model(
            dtm=dtm,
            k=k,
            iterations=iterations,
            seed=seed,
            trainer_params=self.trainer.params,
        )
