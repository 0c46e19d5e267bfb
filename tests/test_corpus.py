import numpy as np
import pytest

from topicsweep import Document, DtmBuilder, EmptyCorpusError, build_dtm


def test_unigram_vocabulary_is_lexicographic():
    dtm = build_dtm({"d1": ["network", "gender"], "d2": ["network", "idea"]}, ngram_range=(1, 1))
    assert dtm.vocabulary == ("gender", "idea", "network")
    assert dtm.counts.shape == (2, 3)
    assert dtm.row("d1").tolist() == [1, 0, 1]
    assert dtm.row("d2").tolist() == [0, 1, 1]
    assert dtm.config["vocabulary_order"] == "lexicographic"


def test_bigrams_never_cross_documents():
    dtm = build_dtm({"d1": ["a", "b"], "d2": ["c", "d"]}, ngram_range=(1, 2))
    assert "a b" in dtm.vocabulary
    assert "c d" in dtm.vocabulary
    assert "b c" not in dtm.vocabulary
    assert dtm.n_tokens == 6


def test_accepts_documents_and_pairs():
    from_docs = DtmBuilder((1, 1)).build([Document("x", ("idea", "idea")), Document("y", ("network",))])
    from_pairs = DtmBuilder((1, 1)).build([("x", ["idea", "idea"]), ("y", ["network"])])
    assert from_docs.fingerprint == from_pairs.fingerprint
    assert from_docs.row("x").tolist() == [2, 0]


def test_empty_corpus_raises():
    with pytest.raises(EmptyCorpusError):
        build_dtm({"d1": [], "d2": []})
    with pytest.raises(EmptyCorpusError):
        build_dtm({})


def test_duplicate_doc_ids_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        build_dtm([("d1", ["a"]), ("d1", ["b"])])


def test_empty_documents_are_dropped_and_recorded():
    dtm = build_dtm({"d1": ["a", "b"], "d2": [], "d3": ["b"]}, ngram_range=(1, 1))
    assert dtm.doc_ids == ("d1", "d3")
    assert dtm.dropped_doc_ids == ("d2",)
    assert (np.asarray(dtm.counts.sum(axis=1)).ravel() > 0).all()


def test_bigram_threshold_keeps_unigrams():
    docs = {"d1": ["gender", "gap", "idea"], "d2": ["gender", "gap"], "d3": ["idea", "network"]}
    dtm = build_dtm(docs, ngram_range=(1, 2), min_term_count_bigram=2)
    assert "gender gap" in dtm.vocabulary
    assert "gap idea" not in dtm.vocabulary
    assert "idea network" not in dtm.vocabulary
    assert "network" in dtm.vocabulary


def test_thresholds_removing_everything_raise():
    with pytest.raises(EmptyCorpusError):
        build_dtm({"d1": ["a"], "d2": ["b"]}, ngram_range=(1, 1), min_term_count_unigram=5)


def test_invalid_ngram_range():
    with pytest.raises(ValueError):
        DtmBuilder(ngram_range=(2, 1))


def test_views(toy_dtm):
    frame = toy_dtm.to_frame()
    assert frame.shape == (toy_dtm.n_documents, toy_dtm.n_terms)
    assert list(frame.index) == list(toy_dtm.doc_ids)
    assert toy_dtm.term_totals().sum() == toy_dtm.n_tokens
    assert (toy_dtm.document_frequency() >= 1).all()
    with pytest.raises(KeyError):
        toy_dtm.row("missing")
