import numpy as np
import pytest

from topicsweep import (
    TopicSummarizer,
    document_topic_frame,
    dominant_topics,
    exclusivity_scores,
    prevalence_by_group,
    topic_prevalence,
)


def test_exclusive_terms_follow_specificity(exclusivity_model):
    rows = TopicSummarizer(top_n=3).summarize(exclusivity_model)
    assert "alpha" in rows[0].exclusive_terms
    assert "alpha" not in rows[1].exclusive_terms
    assert rows[1].exclusive_terms == ("d", "e", "f")


def test_top_terms_and_label(exclusivity_model):
    rows = TopicSummarizer(top_n=3, label_terms=2).summarize(exclusivity_model)
    assert rows[0].top_terms == ("alpha", "b", "c")
    assert rows[0].label == "alpha_b"
    assert [r.topic_id for r in rows] == [0, 1]
    assert rows[1].coherence == pytest.approx(-0.2)


def test_prevalence_is_theta_column_mean(exclusivity_model):
    np.testing.assert_allclose(topic_prevalence(exclusivity_model), [0.5, 0.5])
    scores = exclusivity_scores(exclusivity_model)
    assert scores.shape == exclusivity_model.phi.shape
    assert scores[0, 3] == 0.0


def test_summary_frame(toy_model):
    frame = TopicSummarizer(top_n=5).summary_frame(toy_model)
    assert list(frame.columns) == ["topic_id", "label", "prevalence", "coherence", "top_terms", "exclusive_terms"]
    assert len(frame) == toy_model.k
    assert frame["prevalence"].sum() == pytest.approx(1.0)


def test_document_views(toy_model):
    frame = document_topic_frame(toy_model)
    assert list(frame.columns) == list(range(toy_model.k))
    assert list(frame.index) == list(toy_model.doc_ids)
    dominant = dominant_topics(toy_model)
    assert dominant.between(0, toy_model.k - 1).all()


def test_prevalence_by_group(toy_model):
    labels = {"a": "networks", "b": "networks", "c": "novelty", "d": "novelty", "e": "careers"}
    table = prevalence_by_group(toy_model, labels)
    assert list(table.index) == ["careers", "networks", "novelty"]
    np.testing.assert_allclose(table.sum(axis=1), 1.0, atol=1e-9)

    with pytest.raises(ValueError):
        prevalence_by_group(toy_model, {"zzz": "nothing"})


def test_summarizer_does_not_touch_model(exclusivity_model):
    before = exclusivity_model.phi.copy()
    TopicSummarizer(top_n=2).summary_frame(exclusivity_model)
    np.testing.assert_array_equal(exclusivity_model.phi, before)
