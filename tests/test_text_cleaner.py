from topicsweep import TextCleaner


def test_clean_drops_stop_words_digits_and_citations():
    tokens = TextCleaner().clean("Studies of networks [3] in 2020 show classes of analysis")
    assert tokens == ["study", "network", "class", "analysis"]


def test_extra_stop_words_and_plural_toggle():
    cleaner = TextCleaner(extra_stop_words={"Paper"}, strip_plurals=False)
    assert cleaner.clean("This paper maps networks") == ["maps", "networks"]


def test_empty_text():
    assert TextCleaner().clean("") == []
    assert TextCleaner().clean(None) == []


def test_clean_corpus_keeps_order():
    docs = TextCleaner().clean_corpus({"b": "Gender networks", "a": "Novel ideas"})
    assert [d.doc_id for d in docs] == ["b", "a"]
    assert docs[0].tokens == ("gender", "network")
    assert docs[1].tokens == ("novel", "idea")
