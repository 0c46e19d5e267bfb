"""
topicsweep.smoke_test

Minimal end-to-end smoke test for topicsweep.

Usage (from any directory where the env is active):

    python -m topicsweep.smoke_test

What it does:
- Creates a tiny in-memory corpus of paper abstracts in two research streams.
- Cleans the abstracts and builds a unigram+bigram DTM.
- Sweeps K over a short range on a small worker pool and selects the best K.
- Summarizes topics, clusters topics and documents.
- Computes distinctive terms between the two streams.
- Prints a short summary to stdout.
"""

from __future__ import annotations

from typing import Any, Dict

from .corpus import DtmBuilder
from .distinctive_terms import weighted_log_odds
from .lda_trainer import LdaTrainer
from .model_sweep import ModelSweeper, SweepWorkerPool, select_best
from .text_cleaner import TextCleaner
from .topic_clustering import document_dendrogram, topic_dendrogram
from .topic_summarizer import TopicSummarizer


ABSTRACTS = {
    "p01": """Social networks shape how ideas diffuse among scientists. We analyze
        co-authorship networks and show that network brokerage predicts the
        adoption of novel ideas across research communities.""",
    "p02": """Gender differences in collaboration networks persist across fields.
        Women scientists hold fewer brokerage positions in co-authorship networks,
        which limits the diffusion of their ideas.""",
    "p03": """We study how novel ideas emerge from recombination of existing knowledge.
        Citation networks reveal that atypical combinations of prior work
        predict high impact papers.""",
    "p04": """Peer review evaluations are affected by gender and institutional prestige.
        Using grant proposals we estimate reviewer bias and its consequences for
        funding decisions.""",
    "p05": """Funding decisions and grant peer review concentrate resources among
        elite institutions. We model cumulative advantage in research funding
        and scientific careers.""",
    "p06": """Scientific careers depend on early funding, mentorship and prestige.
        Career trajectories of women scientists diverge after the postdoctoral
        stage, reflecting gender gaps in grant success.""",
    "p07": """Knowledge recombination and atypical citation combinations drive
        scientific novelty. Novel papers are cited later but accumulate more
        impact over long windows.""",
    "p08": """Team size and collaboration networks influence disruption and novelty.
        Small teams disrupt science while large teams develop existing ideas.""",
}

STREAMS = {
    "p01": "networks",
    "p02": "networks",
    "p03": "novelty",
    "p04": "careers",
    "p05": "careers",
    "p06": "careers",
    "p07": "novelty",
    "p08": "networks",
}


def run_smoke_test(verbose: bool = True) -> Dict[str, Any]:
    """
    Run a small end-to-end test of the main pipeline.

    Returns
    -------
    result : dict
        A dictionary containing:
        - "dtm"
        - "sweep"        (SweepResult)
        - "best"         (TopicModel)
        - "summary"      (pd.DataFrame)
        - "topic_tree", "document_tree" (Dendrogram)
        - "log_odds"     (pd.DataFrame)
    """
    log = print if verbose else (lambda *_args, **_kwargs: None)

    log(f"[smoke_test] Starting topicsweep smoke test on {len(ABSTRACTS)} abstracts...")

    # -------------------------------------------------------
    # 1) Cleaning + DTM
    # -------------------------------------------------------
    documents = TextCleaner(extra_stop_words={"study", "analyze", "use", "using"}).clean_corpus(ABSTRACTS)
    dtm = DtmBuilder(ngram_range=(1, 2), log_fn=log).build(documents)

    # -------------------------------------------------------
    # 2) K sweep + selection
    # -------------------------------------------------------
    trainer = LdaTrainer(alpha=0.1, beta=0.05, coherence_top_n=5)
    with SweepWorkerPool(n_workers=2, backend="process") as pool:
        sweeper = ModelSweeper(trainer, pool=pool, base_seed=42, logger=log)
        sweep = sweeper.sweep(dtm, k_values=[2, 3, 4, 5], iterations=100, verbose=verbose)

    log(sweep.coherence_by_k().to_string(index=False))
    best = select_best(sweep)
    log(f"[smoke_test] Selected K={best.k} (mean coherence {best.mean_coherence:.4f}).")

    # -------------------------------------------------------
    # 3) Post-hoc analysis
    # -------------------------------------------------------
    summary = TopicSummarizer(top_n=5, label_terms=3).summary_frame(best)
    log(summary.to_string(index=False))

    topic_tree = topic_dendrogram(best)
    document_tree = document_dendrogram(best)
    log(f"[smoke_test] Document leaf order: {document_tree.leaf_order}")

    log_odds = weighted_log_odds(dtm, STREAMS, top_n=3)
    log(log_odds.to_string(index=False))

    log("[smoke_test] Smoke test completed successfully ✅")
    return {
        "dtm": dtm,
        "sweep": sweep,
        "best": best,
        "summary": summary,
        "topic_tree": topic_tree,
        "document_tree": document_tree,
        "log_odds": log_odds,
    }


def main() -> None:
    """
    CLI entrypoint for: python -m topicsweep.smoke_test
    """
    run_smoke_test(verbose=True)


if __name__ == "__main__":
    main()
