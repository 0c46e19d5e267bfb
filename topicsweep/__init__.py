"""
topicsweep

LDA topic-model selection and post-hoc analysis for small research corpora.

High-level API
--------------
- TextCleaner        → abstracts to token sequences (reference preprocessor)
- DtmBuilder         → unigram/bigram document-term matrix
- LdaTrainer         → collapsed Gibbs LDA + probabilistic coherence
- ModelSweeper       → train across K values on a SweepWorkerPool
- select_best        → pick the most coherent model (ties → smaller K)
- TopicSummarizer    → prevalence, coherence, top and exclusive terms
- Clustering helpers:
    * pairwise_divergence, cluster, topic_dendrogram, document_dendrogram
- Distinctive terms:
    * tf_idf_by_group, weighted_log_odds
- ModelStore         → joblib cache of fitted models and sweeps
- Visualization helpers:
    * plot_coherence_by_k, plot_topic_prevalence, plot_dendrogram
"""

from importlib.metadata import PackageNotFoundError, version


from .errors import (
    TopicSweepError,
    EmptyCorpusError,
    InvalidDistributionError,
    DegenerateModelError,
    EmptySweepError,
    SweepFailedError,
)

# Core APIs
from .corpus import Document, DocumentTermMatrix, DtmBuilder, build_dtm
from .text_cleaner import TextCleaner
from .lda_trainer import LdaTrainer, TopicModel, probabilistic_coherence
from .model_sweep import (
    ModelSweeper,
    SweepEntry,
    SweepResult,
    SweepWorkerPool,
    derive_seed,
    select_best,
)
from .topic_summarizer import (
    TopicSummarizer,
    TopicSummaryRow,
    document_topic_frame,
    dominant_topics,
    exclusivity_scores,
    prevalence_by_group,
    topic_prevalence,
)
from .topic_clustering import (
    Dendrogram,
    Merge,
    cluster,
    document_dendrogram,
    js_divergence,
    pairwise_divergence,
    topic_dendrogram,
    topic_distributions_over_documents,
)
from .distinctive_terms import term_counts_by_group, tf_idf_by_group, weighted_log_odds
from .model_store import ModelStore

# Visualization APIs
from .topic_viz import plot_coherence_by_k, plot_dendrogram, plot_topic_prevalence


# ---------------------------------------------------------------------
# Runtime version (single source of truth = pyproject.toml)
# ---------------------------------------------------------------------
try:
    __version__ = version("topicsweep")
except PackageNotFoundError:
    # Fallback when running directly from a clone without installation
    __version__ = "0.0.0"

__all__ = [
    "TopicSweepError",
    "EmptyCorpusError",
    "InvalidDistributionError",
    "DegenerateModelError",
    "EmptySweepError",
    "SweepFailedError",
    "Document",
    "DocumentTermMatrix",
    "DtmBuilder",
    "build_dtm",
    "TextCleaner",
    "LdaTrainer",
    "TopicModel",
    "probabilistic_coherence",
    "ModelSweeper",
    "SweepEntry",
    "SweepResult",
    "SweepWorkerPool",
    "derive_seed",
    "select_best",
    "TopicSummarizer",
    "TopicSummaryRow",
    "document_topic_frame",
    "dominant_topics",
    "exclusivity_scores",
    "prevalence_by_group",
    "topic_prevalence",
    "Dendrogram",
    "Merge",
    "cluster",
    "document_dendrogram",
    "js_divergence",
    "pairwise_divergence",
    "topic_dendrogram",
    "topic_distributions_over_documents",
    "term_counts_by_group",
    "tf_idf_by_group",
    "weighted_log_odds",
    "ModelStore",
    "plot_coherence_by_k",
    "plot_dendrogram",
    "plot_topic_prevalence",
    "__version__",
]
