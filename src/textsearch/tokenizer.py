"""
Tokenization of normalized text into unigrams, word n-grams, skip-grams,
collocations and character q-grams.

A Tokenizer keeps scratch buffers between calls and is therefore not
thread-safe: every worker needs its own copy (see `Tokenizer.copy` and
`tokenize_corpus`).
"""

from __future__ import annotations

from collections.abc import Sequence

from textsearch.parallel import map_with_context
from textsearch.textconfig import Skipgram, TextConfig, normalize_text

# Tags prepended to non-unigram tokens when TextConfig.mark_token_type is set
NGRAM_TAG = "\tn"
SKIPGRAM_TAG = "\ts"
COLLOCATION_TAG = "\tc"
QGRAM_TAG = "\tq"


class Tokenizer:
    """
    Converts a text into a list of string tokens following a TextConfig.

    Args:
        config: Preprocessing and tokenization pipeline (default TextConfig()).

    Attributes:
        config: The pipeline configuration.
    """

    def __init__(self, config: TextConfig | None = None):
        self.config = config or TextConfig()
        self._words: list[str] = []
        self._tokens: list[str] = []
        self._text = ""

    def copy(self) -> Tokenizer:
        """Return a tokenizer with the same config and fresh scratch buffers."""
        return Tokenizer(self.config)

    def __call__(self, text: str) -> list[str]:
        return self.tokenize(text)

    def _tag(self, tag: str, token: str) -> str:
        return tag + token if self.config.mark_token_type else token

    def _load(self, text: str) -> None:
        self._text = normalize_text(self.config, text)
        self._words.clear()
        if self._text:
            self._words.extend(self._text.split(" "))
        self._tokens.clear()

    def tokenize(self, text: str) -> list[str]:
        """Tokenize text using the configured pipeline."""
        self._load(text)
        for n in self.config.nlist:
            self.nwords(n)
        for skipgram in self.config.slist:
            self.skipgrams(skipgram)
        if self.config.collocations > 0:
            self.collocations(self.config.collocations)
        for q in self.config.qlist:
            self.qgrams(q)
        return list(self._tokens)

    def unigrams(self) -> None:
        """Push the words of the loaded text."""
        self._tokens.extend(self._words)

    def nwords(self, n: int) -> None:
        """Push word n-grams of the loaded text (plain words when n == 1)."""
        if n == 1:
            self.unigrams()
            return
        words = self._words
        for i in range(len(words) - n + 1):
            self._tokens.append(self._tag(NGRAM_TAG, " ".join(words[i : i + n])))

    def skipgrams(self, skipgram: Skipgram) -> None:
        """Push skip-grams: qsize words taken every skip + 1 positions."""
        words = self._words
        step = skipgram.skip + 1
        span = (skipgram.qsize - 1) * step
        for i in range(len(words) - span):
            token = " ".join(words[i : i + span + 1 : step])
            self._tokens.append(self._tag(SKIPGRAM_TAG, token))

    def collocations(self, window: int) -> None:
        """Push word pairs that co-occur within window positions."""
        words = self._words
        for i, word in enumerate(words):
            for other in words[i + 1 : i + 1 + window]:
                self._tokens.append(self._tag(COLLOCATION_TAG, f"{word} {other}"))

    def qgrams(self, q: int) -> None:
        """Push character q-grams of the loaded text, padded with one space at each end."""
        if not self._text:
            return
        text = f" {self._text} "
        for i in range(len(text) - q + 1):
            self._tokens.append(self._tag(QGRAM_TAG, text[i : i + q]))


def tokenize(text: str, config: TextConfig | None = None) -> list[str]:
    """Tokenize a single text with a throwaway tokenizer."""
    return Tokenizer(config).tokenize(text)


def tokenize_corpus(
    tokenizer: Tokenizer,
    texts: Sequence[str],
    workers: int | None = None,
) -> list[list[str]]:
    """
    Tokenize a list of texts, in parallel for large corpora.

    Each worker thread uses its own copy of tokenizer; results keep input order.
    """
    return map_with_context(tokenizer.copy, Tokenizer.tokenize, texts, workers=workers)


__all__ = [
    "Tokenizer",
    "tokenize",
    "tokenize_corpus",
    "NGRAM_TAG",
    "SKIPGRAM_TAG",
    "COLLOCATION_TAG",
    "QGRAM_TAG",
]
