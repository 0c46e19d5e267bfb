import math
import pickle

import numpy as np
import pytest
import scipy.sparse as sp

from topicsweep import LdaTrainer, probabilistic_coherence


def test_phi_and_theta_rows_sum_to_one(toy_model, toy_dtm):
    assert toy_model.phi.shape == (3, toy_dtm.n_terms)
    assert toy_model.theta.shape == (toy_dtm.n_documents, 3)
    np.testing.assert_allclose(toy_model.phi.sum(axis=1), 1.0, atol=1e-6)
    np.testing.assert_allclose(toy_model.theta.sum(axis=1), 1.0, atol=1e-6)
    assert toy_model.coherence.shape == (3,)
    assert np.isfinite(toy_model.log_likelihood)


def test_same_seed_same_model(toy_dtm):
    trainer = LdaTrainer()
    m1 = trainer.fit(toy_dtm, k=4, iterations=20, seed=42)
    m2 = trainer.fit(toy_dtm, k=4, iterations=20, seed=42)
    np.testing.assert_array_equal(m1.phi, m2.phi)
    np.testing.assert_array_equal(m1.theta, m2.theta)
    assert m1.config["dtm_fingerprint"] == toy_dtm.fingerprint


def test_burnin_averaging(toy_dtm):
    model = LdaTrainer(burnin=10).fit(toy_dtm, k=2, iterations=20, seed=1)
    assert model.config["posterior_samples"] == 10
    np.testing.assert_allclose(model.theta.sum(axis=1), 1.0, atol=1e-6)


def test_invalid_arguments(toy_dtm):
    with pytest.raises(ValueError):
        LdaTrainer().fit(toy_dtm, k=0)
    with pytest.raises(ValueError):
        LdaTrainer().fit(toy_dtm, k=2, iterations=0)
    with pytest.raises(ValueError):
        LdaTrainer(alpha=0)


def test_model_is_read_only(toy_model):
    with pytest.raises(ValueError):
        toy_model.phi[0, 0] = 1.0


def test_top_terms(toy_model):
    terms = toy_model.top_terms(0, n=4)
    assert len(terms) == 4
    assert terms[0] == toy_model.vocabulary[int(np.argmax(toy_model.phi[0]))]


def test_probabilistic_coherence_by_hand():
    counts = sp.csr_matrix(np.array([[1, 1], [1, 0], [0, 1]]))
    phi = np.array([[0.6, 0.4]])
    # D(w0)=D(w1)=2, D(w0,w1)=1, N=3 → log((1/2) / (2/3)) for both ordered pairs
    scores = probabilistic_coherence(phi, counts, top_n=2)
    assert scores[0] == pytest.approx(math.log(0.75))


def test_coherence_of_single_term_topics_is_zero():
    counts = sp.csr_matrix(np.array([[1, 1], [1, 0]]))
    scores = probabilistic_coherence(np.array([[0.5, 0.5], [0.9, 0.1]]), counts, top_n=1)
    assert scores.tolist() == [0.0, 0.0]


def test_coherence_weights_documents_by_topic_share():
    counts = sp.csr_matrix(np.array([[1, 1], [1, 0], [0, 1]]))
    phi = np.array([[0.6, 0.4], [0.6, 0.4]])
    theta = np.array([[0.9, 0.1], [0.1, 0.9], [0.1, 0.9]])
    # topic 0: 0.9 / (0.9 + 0.1) over P(w)=2/3; topic 1: 0.1 / (0.1 + 0.9)
    scores = probabilistic_coherence(phi, counts, theta, top_n=2)
    assert scores[0] == pytest.approx(math.log(1.35))
    assert scores[1] == pytest.approx(math.log(0.15))


def test_coherence_rejects_misaligned_theta():
    counts = sp.csr_matrix(np.array([[1, 1], [1, 0]]))
    with pytest.raises(ValueError):
        probabilistic_coherence(np.array([[0.5, 0.5]]), counts, np.ones((3, 1)))


def test_unpickled_model_stays_read_only(toy_model):
    restored = pickle.loads(pickle.dumps(toy_model))
    np.testing.assert_array_equal(restored.phi, toy_model.phi)
    with pytest.raises(ValueError):
        restored.phi[0, 0] = 1.0
    with pytest.raises(ValueError):
        restored.theta[0, 0] = 1.0
