"""
text_cleaner.py

TextCleaner: lightweight, deterministic cleaning of paper abstracts into
token sequences for the document-term matrix.

Main features
-------------
- Lowercasing and regex tokenization (alphabetic runs, inner hyphens and
  apostrophes kept).
- Removal of citation markers such as [4] or [1, 2] and of any token that
  contains a digit.
- Stop-word removal using scikit-learn's English list, optionally extended.
- Naive plural stripping ("studies" → "study", "networks" → "network"),
  leaving words ending in "ss", "us" and "is" alone.

This is a reference preprocessor. Any other tokenizer/stemmer can be used
instead as long as it produces `Document` objects (doc_id + tokens).

Quick usage
-----------
    from topicsweep import TextCleaner

    cleaner = TextCleaner(extra_stop_words={"paper", "study"})
    documents = cleaner.clean_corpus({"p1": "Networks of gender ideas ..."})
"""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Set

from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from .corpus import Document


class TextCleaner:
    """
    Abstract → token sequence cleaning.

    The cleaner is stateless once constructed, so the same instance can be
    reused across corpora and gives identical output for identical input.
    """

    def __init__(
        self,
        *,
        extra_stop_words: Optional[Iterable[str]] = None,
        use_default_stop_words: bool = True,
        min_token_len: int = 2,
        strip_plurals: bool = True,
    ) -> None:
        """
        Parameters
        ----------
        extra_stop_words:
            Additional words to drop (compared after lowercasing, before
            plural stripping).
        use_default_stop_words:
            If True (default), start from scikit-learn's ENGLISH_STOP_WORDS.
        min_token_len:
            Tokens shorter than this (after plural stripping) are dropped.
        strip_plurals:
            If True, apply the naive plural-stripping rules.
        """
        if min_token_len < 1:
            raise ValueError("min_token_len must be >= 1.")

        stop_words: Set[str] = set(ENGLISH_STOP_WORDS) if use_default_stop_words else set()
        if extra_stop_words:
            stop_words.update(w.lower() for w in extra_stop_words)

        self.stop_words = frozenset(stop_words)
        self.min_token_len = min_token_len
        self.strip_plurals = strip_plurals

        self._citation_re = re.compile(r"\[[0-9,\s\-–]+\]")
        self._token_re = re.compile(r"[a-z0-9]+(?:['\-][a-z0-9]+)*")
        self._digit_re = re.compile(r"\d")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def clean(self, text: Optional[str]) -> List[str]:
        """
        Clean a single abstract into an ordered list of tokens.

        Parameters
        ----------
        text:
            Raw abstract text. None/empty yields an empty list.

        Returns
        -------
        List[str]
            Tokens in document order (duplicates kept, they are counts).
        """
        if not text:
            return []

        text = self._citation_re.sub(" ", text.lower())

        tokens: List[str] = []
        for raw in self._token_re.findall(text):
            raw = raw.strip("'-")
            if not raw or self._digit_re.search(raw):
                continue
            if raw in self.stop_words:
                continue
            token = self._singularize(raw) if self.strip_plurals else raw
            if len(token) < self.min_token_len or token in self.stop_words:
                continue
            tokens.append(token)
        return tokens

    def clean_corpus(self, texts: Mapping[str, Optional[str]]) -> List[Document]:
        """
        Clean a mapping doc_id → abstract text into Document objects,
        preserving the mapping's iteration order.
        """
        return [Document(doc_id=str(doc_id), tokens=tuple(self.clean(text))) for doc_id, text in texts.items()]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _singularize(word: str) -> str:
        """
        Naive plural stripping.

        - "ies" → "y" (studies → study), for words longer than 4 chars
        - "sses" → "ss" (classes → class)
        - trailing "s" dropped unless the word ends in "ss", "us" or "is"
          (analysis, corpus, process stay as they are)
        """
        if len(word) > 4 and word.endswith("ies"):
            return word[:-3] + "y"
        if word.endswith("sses"):
            return word[:-2]
        if len(word) > 3 and word.endswith("s") and not word.endswith(("ss", "us", "is")):
            return word[:-1]
        return word
