import math

import numpy as np
import pytest

from topicsweep import (
    InvalidDistributionError,
    LdaTrainer,
    build_dtm,
    cluster,
    document_dendrogram,
    js_divergence,
    pairwise_divergence,
    topic_dendrogram,
)


def test_js_is_symmetric_and_zero_on_identity():
    p = [0.2, 0.5, 0.3]
    q = [0.6, 0.1, 0.3]
    assert js_divergence(p, q) == pytest.approx(js_divergence(q, p))
    assert js_divergence(p, p) == pytest.approx(0.0, abs=1e-12)


def test_js_is_bounded_for_disjoint_support():
    assert js_divergence([1.0, 0.0], [0.0, 1.0]) == pytest.approx(math.log(2))
    assert js_divergence([1.0, 0.0], [0.0, 1.0], base=2) == pytest.approx(1.0)


def test_pairwise_matrix_shape(toy_model):
    D = pairwise_divergence(toy_model.theta)
    n = toy_model.theta.shape[0]
    assert D.shape == (n, n)
    np.testing.assert_allclose(D, D.T)
    assert np.all(np.diag(D) == 0.0)
    assert D.max() <= math.log(2) + 1e-12


def test_invalid_rows_are_rejected():
    with pytest.raises(InvalidDistributionError) as excinfo:
        pairwise_divergence([[0.5, 0.5], [0.7, 0.7]])
    assert excinfo.value.row == 1
    with pytest.raises(InvalidDistributionError):
        pairwise_divergence([[1.2, -0.2], [0.5, 0.5]])
    with pytest.raises(InvalidDistributionError):
        pairwise_divergence([[np.nan, 1.0], [0.5, 0.5]])


def test_identical_documents_merge_first():
    theta = np.array(
        [
            [1.0, 0.0],
            [1.0, 0.0],
            [0.0, 1.0],
            [1.0, 0.0],
        ]
    )
    tree = cluster(pairwise_divergence(theta), labels=["a", "b", "odd", "c"])
    merges = tree.merges
    assert len(merges) == 3
    assert merges[0].height == pytest.approx(0.0)
    assert merges[1].height == pytest.approx(0.0)
    assert sorted(tree.members(tree.n_leaves + 1)) == ["a", "b", "c"]
    assert merges[2].size == 4

    flat = tree.cut(2)
    assert flat["a"] == flat["b"] == flat["c"]
    assert flat["odd"] != flat["a"]


def test_cluster_validation():
    with pytest.raises(ValueError):
        cluster(np.zeros((0, 0)))
    with pytest.raises(ValueError):
        cluster(np.zeros((2, 2)), linkage="bogus")
    with pytest.raises(ValueError):
        cluster(np.array([[0.0, 1.0], [2.0, 0.0]]))


def test_average_linkage_keeps_divergence_units():
    D = np.array([[0.0, 0.1, 0.4], [0.1, 0.0, 0.4], [0.4, 0.4, 0.0]])
    tree = cluster(D, linkage="average")
    assert tree.merges[0].height == pytest.approx(0.1)
    assert tree.merges[1].height == pytest.approx(0.4)


def test_model_dendrograms(toy_model):
    docs = document_dendrogram(toy_model)
    assert docs.n_leaves == len(toy_model.doc_ids)
    assert sorted(docs.leaf_order) == sorted(toy_model.doc_ids)
    topics = topic_dendrogram(toy_model)
    assert topics.labels == (0, 1, 2)
    assert list(topics.to_frame().columns) == ["step", "left", "right", "height", "size"]


def test_single_topic_dendrogram(toy_dtm):
    model = LdaTrainer().fit(toy_dtm, k=1, iterations=5, seed=1)
    tree = topic_dendrogram(model)
    assert tree.n_leaves == 1
    assert tree.merges == []
    assert tree.leaf_order == [0]
    assert tree.cut(2).tolist() == [1]
    assert tree.cut_at(0.5).tolist() == [1]
    assert tree.to_frame().empty


def test_single_document_dendrogram():
    model = LdaTrainer().fit(build_dtm({"only": ["a", "b"]}, ngram_range=(1, 1)), k=2, iterations=5, seed=1)
    tree = document_dendrogram(model)
    assert tree.leaf_order == ["only"]
    assert tree.cut(3)["only"] == 1
