import math

import pytest

from topicsweep import build_dtm, term_counts_by_group, tf_idf_by_group, weighted_log_odds


@pytest.fixture
def grouped_dtm():
    docs = {
        "d1": ["network", "gender", "network"],
        "d2": ["network", "idea"],
        "d3": ["idea", "novelty"],
    }
    return build_dtm(docs, ngram_range=(1, 1))


GROUPS = {"d1": "A", "d2": "A", "d3": "B"}


def test_term_counts_by_group(grouped_dtm):
    counts = term_counts_by_group(grouped_dtm, GROUPS)
    a = counts[counts["group"] == "A"].set_index("term")["n"]
    assert a.to_dict() == {"network": 3, "gender": 1, "idea": 1}
    assert counts["n"].sum() == grouped_dtm.n_tokens


def test_tf_idf_by_group(grouped_dtm):
    frame = tf_idf_by_group(grouped_dtm, GROUPS)
    top = frame.groupby("group").head(1).set_index("group")
    assert top.loc["A", "term"] == "network"
    assert top.loc["A", "tf_idf"] == pytest.approx(3 / 5 * math.log(2))
    assert top.loc["B", "term"] == "novelty"

    idea = frame[frame["term"] == "idea"]
    assert (idea["tf_idf"] == 0).all()


def test_weighted_log_odds(grouped_dtm):
    frame = weighted_log_odds(grouped_dtm, GROUPS, top_n=1)
    assert len(frame) == 2
    top = frame.set_index("group")
    assert top.loc["A", "term"] == "network"
    assert top.loc["B", "term"] == "novelty"
    assert top.loc["B", "log_odds_weighted"] > 0


def test_requires_two_groups(grouped_dtm):
    with pytest.raises(ValueError):
        tf_idf_by_group(grouped_dtm, {"d1": "A", "d2": "A"})
    with pytest.raises(ValueError):
        weighted_log_odds(grouped_dtm, {"x": "A"})
