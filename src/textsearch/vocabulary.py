"""
Vocabulary: stable token <-> id mapping with corpus statistics.

Ids are dense, assigned in first-seen order (deterministic for a given input
order) and never reused. Every token records the number of documents that
contain it (ndocs) and its number of occurrences (collection frequency).
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from textsearch.approx import QgramIndex, levenshtein_distance
from textsearch.errors import IncompatibleConfig, InvalidParameter
from textsearch.textconfig import TextConfig
from textsearch.tokenizer import Tokenizer, tokenize_corpus

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

BOW = dict[int, int]


@dataclass(frozen=True)
class VocabularyEntry:
    """A token with its id and corpus statistics."""

    id: int
    token: str
    ndocs: int
    freq: int


def _common_config(configs: Iterable[TextConfig | None]) -> TextConfig | None:
    """Return the single known config among configs, raising on mismatches."""
    found: TextConfig | None = None
    for config in configs:
        if config is None:
            continue
        if found is None:
            found = config
        elif found.fingerprint() != config.fingerprint():
            raise IncompatibleConfig(found.fingerprint(), config.fingerprint())
    return found


class Vocabulary:
    """
    Ordered set of tokens with per-token statistics.

    Args:
        config: TextConfig the tokens were produced with (None if unknown).

    Attributes:
        config: The text configuration, used to detect incompatible inputs.
        corpus_size: Number of documents accumulated into the vocabulary.
    """

    def __init__(self, config: TextConfig | None = None):
        self.config = config
        self.corpus_size = 0
        self._tokens: list[str] = []
        self._ndocs: list[int] = []
        self._freq: list[int] = []
        self._token2id: dict[str, int] = {}
        self._lock = threading.RLock()
        self._approx: QgramIndex | None = None

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_corpus(
        cls,
        corpus: Iterable[Sequence[str]],
        config: TextConfig | None = None,
    ) -> Vocabulary:
        """
        Build a vocabulary from an already tokenized corpus.

        Args:
            corpus: Tokenized documents (each is a list of tokens).
            config: TextConfig used to tokenize the corpus, if known.
        """
        voc = cls(config)
        for tokens in corpus:
            voc.append(tokens)
        logger.debug("Built vocabulary: %d tokens from %d documents", len(voc), voc.corpus_size)
        return voc

    @classmethod
    def from_texts(
        cls,
        tokenizer: Tokenizer,
        texts: Sequence[str],
        workers: int | None = None,
    ) -> Vocabulary:
        """
        Tokenize texts (in parallel for large corpora) and build a vocabulary.

        Tokenization runs concurrently, the merge into the vocabulary is
        sequential in input order so ids do not depend on scheduling.
        """
        corpus = tokenize_corpus(tokenizer, texts, workers=workers)
        return cls.from_corpus(corpus, config=tokenizer.config)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def check_config(self, config: TextConfig | None) -> None:
        """Raise IncompatibleConfig if config does not match this vocabulary's config."""
        if config is None or self.config is None:
            return
        if config.fingerprint() != self.config.fingerprint():
            raise IncompatibleConfig(self.config.fingerprint(), config.fingerprint())

    def push(self, token: str, ndocs: int = 0, freq: int = 0) -> int:
        """
        Insert a single token (or add to its statistics) and return its id.

        Unlike append, this does not count a new document in corpus_size.
        """
        with self._lock:
            token_id = self._token2id.get(token)
            if token_id is None:
                token_id = len(self._tokens)
                self._token2id[token] = token_id
                self._tokens.append(token)
                self._ndocs.append(ndocs)
                self._freq.append(freq)
                self._approx = None
            else:
                self._ndocs[token_id] += ndocs
                self._freq[token_id] += freq
            return token_id

    def append(self, tokens: Sequence[str], config: TextConfig | None = None) -> None:
        """
        Add one tokenized document to the vocabulary.

        The caller must pass the TextConfig the document was tokenized with
        when the two may differ; a mismatch raises IncompatibleConfig.
        """
        counts = Counter(tokens)
        with self._lock:
            self.check_config(config)
            if self.config is None and config is not None:
                self.config = config
            self.corpus_size += 1
            for token, count in counts.items():
                self.push(token, 1, count)

    def update(
        self,
        other: Vocabulary,
        predicate: Callable[[VocabularyEntry], bool] | None = None,
    ) -> None:
        """
        Merge other into this vocabulary in place.

        Existing ids are kept; tokens new to this vocabulary get new ids in
        other's order. Only entries accepted by predicate are merged.
        """
        with self._lock:
            self.config = _common_config([self.config, other.config])
            self.corpus_size += other.corpus_size
            for entry in other:
                if predicate is None or predicate(entry):
                    self.push(entry.token, entry.ndocs, entry.freq)

    # -------------------------------------------------------------------------
    # Derived vocabularies
    # -------------------------------------------------------------------------

    def subset(self, ids: Iterable[int]) -> Vocabulary:
        """New vocabulary with the given ids, re-numbered densely in ascending id order."""
        voc = Vocabulary(self.config)
        voc.corpus_size = self.corpus_size
        for token_id in sorted(set(ids)):
            voc.push(self._tokens[token_id], self._ndocs[token_id], self._freq[token_id])
        return voc

    def filter(self, predicate: Callable[[VocabularyEntry], bool]) -> Vocabulary:
        """New vocabulary with the entries accepted by predicate (ids re-numbered)."""
        return self.subset(entry.id for entry in self if predicate(entry))

    @classmethod
    def merge(
        cls,
        *vocabularies: Vocabulary,
        predicate: Callable[[VocabularyEntry], bool] | None = None,
    ) -> Vocabulary:
        """
        Union of vocabularies; statistics of shared tokens are summed.

        Ids follow the order of the first vocabulary, then new tokens of the
        second one, and so on. Raises IncompatibleConfig when two inputs carry
        different known configs.
        """
        voc = cls(_common_config(v.config for v in vocabularies))
        for other in vocabularies:
            voc.update(other, predicate)
        return voc

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        return token in self._token2id

    def __iter__(self) -> Iterator[VocabularyEntry]:
        for token_id in range(len(self._tokens)):
            yield self.entry(token_id)

    def __repr__(self) -> str:
        return f"Vocabulary(tokens={len(self)}, corpus_size={self.corpus_size})"

    def entry(self, token_id: int) -> VocabularyEntry:
        return VocabularyEntry(
            token_id, self._tokens[token_id], self._ndocs[token_id], self._freq[token_id]
        )

    def id_of(self, token: str) -> int | None:
        """Token id (None if not in vocabulary)."""
        return self._token2id.get(token)

    def token_of(self, token_id: int) -> str:
        return self._tokens[token_id]

    def ndocs(self, token_id: int) -> int:
        return self._ndocs[token_id]

    def freq(self, token_id: int) -> int:
        return self._freq[token_id]

    @property
    def tokens(self) -> list[str]:
        return list(self._tokens)

    @property
    def ndocs_array(self) -> NDArray[np.int64]:
        return np.array(self._ndocs, dtype=np.int64)

    @property
    def freq_array(self) -> NDArray[np.int64]:
        return np.array(self._freq, dtype=np.int64)

    @property
    def fingerprint(self) -> str | None:
        return self.config.fingerprint() if self.config is not None else None

    def bagofwords(self, tokens: Iterable[str], bow: BOW | None = None) -> BOW:
        """
        Count known tokens into a bag of words (token id -> occurrences).

        Unknown tokens are dropped. If bow is given it is updated and returned.
        """
        bow = {} if bow is None else bow
        lookup = self._token2id
        for token in tokens:
            token_id = lookup.get(token)
            if token_id is not None:
                bow[token_id] = bow.get(token_id, 0) + 1
        return bow

    def approx_lookup(
        self,
        token: str,
        max_distance: float = 0.5,
        distance_fn: Callable[[str, str], float] | None = None,
    ) -> str | None:
        """
        Nearest vocabulary token to token within max_distance, or None.

        Exact matches are returned directly; otherwise candidates come from a
        q-gram inverted file over the vocabulary, built on first use and
        rebuilt after the vocabulary grows.
        """
        if max_distance < 0:
            raise InvalidParameter(f"max_distance must be >= 0, got {max_distance}")
        if token in self._token2id:
            return token
        index = self._approx
        if index is None or len(index) != len(self._tokens):
            index = self._approx = QgramIndex(self._tokens)
        token_id = index.nearest(token, max_distance, distance_fn or levenshtein_distance)
        return None if token_id is None else index.tokens[token_id]


__all__ = ["BOW", "Vocabulary", "VocabularyEntry"]
