import numpy as np
import pytest

from topicsweep import DtmBuilder, LdaTrainer, TextCleaner, TopicModel


TOY_ABSTRACTS = {
    "a": "Gender gaps in scientific collaboration networks and network brokerage.",
    "b": "Collaboration networks shape gender differences in scientific careers.",
    "c": "Novel ideas emerge from recombination of prior knowledge in citations.",
    "d": "Citation networks show novel recombination of prior knowledge.",
    "e": "Grant funding and peer review decisions shape scientific careers.",
    "f": "Peer review bias affects grant funding decisions.",
}


@pytest.fixture(scope="session")
def toy_documents():
    """Six short cleaned abstracts in three loose themes."""
    return TextCleaner().clean_corpus(TOY_ABSTRACTS)


@pytest.fixture(scope="session")
def toy_dtm(toy_documents):
    return DtmBuilder(ngram_range=(1, 2)).build(toy_documents)


@pytest.fixture(scope="session")
def toy_model(toy_dtm):
    return LdaTrainer(alpha=0.1, beta=0.05).fit(toy_dtm, k=3, iterations=30, seed=7)


@pytest.fixture
def exclusivity_model():
    """Handcrafted 2-topic model: "alpha" is heavy in topic 0, rare in topic 1."""
    vocabulary = ("alpha", "b", "c", "d", "e", "f")
    phi = np.array(
        [
            [0.50, 0.30, 0.20, 0.00, 0.00, 0.00],
            [0.01, 0.00, 0.00, 0.33, 0.33, 0.33],
        ]
    )
    theta = np.array([[0.5, 0.5], [0.5, 0.5]])
    return TopicModel(
        k=2,
        phi=phi,
        theta=theta,
        coherence=np.array([0.1, -0.2]),
        doc_ids=("d1", "d2"),
        vocabulary=vocabulary,
    )
