"""
BM25 inverted file over sparse vectors.

The index stores, per token id, a postings list of (doc_id, weight) pairs in
insertion order, plus the length of every document (sum of its absolute
weights). Queries accumulate BM25 partial scores over the postings lists of
their tokens and keep the best k candidates:

    score(d) += q_t * idf_t * (tf * (k1 + 1)) / (tf + k1 * (1 - b + b * dl / avgdl))
    idf_t     = log(1 + (N - df_t + 0.5) / (df_t + 0.5))

States:
    open    - postings are growable python lists, `append` is allowed.
    frozen  - postings live in a CSR matrix (rows = tokens, columns = docs),
              read-only; `freeze` is one-way.

Concurrency:
    Appends are serialized by an index lock. Searches do not lock: a query
    sees the documents committed when it started (snapshot isolation); a
    document is committed once all its postings are written.
"""

from __future__ import annotations

import heapq
import logging
import math
import threading
from bisect import bisect_left
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, Union

import numpy as np
from scipy.sparse import csr_matrix

from textsearch.errors import InvalidParameter
from textsearch.parallel import map_with_context
from textsearch.tokenizer import Tokenizer

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from textsearch.model import VectorModel

logger = logging.getLogger(__name__)

Query = Union[Mapping[int, float], str]

_INITIAL_CAPACITY = 64


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class BM25Parameters:
    """
    BM25 ranking parameters.

    Args:
        k1: Term frequency saturation.
        b: Length normalization strength, in [0, 1].
        epsilon: Numerical stability for divisions.
    """

    k1: float = 1.5
    b: float = 0.75
    epsilon: float = 1e-9

    def __post_init__(self):
        if self.k1 < 0:
            raise InvalidParameter(f"k1 must be >= 0, got {self.k1}")
        if not 0.0 <= self.b <= 1.0:
            raise InvalidParameter(f"b must be in [0, 1], got {self.b}")
        if self.epsilon <= 0:
            raise InvalidParameter(f"epsilon must be > 0, got {self.epsilon}")


class SearchResult(NamedTuple):
    doc_id: int
    score: float


def idf_lucene(df: int, n: int) -> float:
    """Lucene IDF (non-negative): log(1 + (N - df + 0.5) / (df + 0.5))"""
    return math.log(1.0 + (n - df + 0.5) / (df + 0.5))


def saturate_bm25(
    tf: NDArray[np.float64], k1: float, norm: NDArray[np.float64], epsilon: float
) -> NDArray[np.float64]:
    """BM25 saturation, vectorized: (tf * (k1 + 1)) / (tf + k1 * norm)."""
    return (tf * (k1 + 1.0)) / (tf + k1 * norm + epsilon)


# =============================================================================
# Inverted file
# =============================================================================


class BM25InvertedFile:
    """
    Inverted index with BM25 top-k search.

    Args:
        model: Optional vector model; required for text queries and to
            persist the vocabulary together with the index.
        params: BM25 parameters.
    """

    def __init__(self, model: VectorModel | None = None, params: BM25Parameters | None = None):
        self.model = model
        self.params = params or BM25Parameters()
        self._lock = threading.Lock()
        # token id -> (doc ids, weights); weights are appended before doc ids
        self._postings: dict[int, tuple[list[int], list[float]]] = {}
        self._frozen: csr_matrix | None = None
        self._doclens = np.zeros(_INITIAL_CAPACITY, dtype=np.float64)
        self._cumlens = np.zeros(_INITIAL_CAPACITY, dtype=np.float64)
        self._n = 0

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return self._n

    def __repr__(self) -> str:
        state = "frozen" if self.is_frozen else "open"
        return f"BM25InvertedFile(docs={self.n_docs}, tokens={self.vocabulary_size}, {state})"

    @property
    def n_docs(self) -> int:
        return self._n

    @property
    def vocabulary_size(self) -> int:
        """Number of token ids with a non-empty postings list."""
        postings = self._postings
        frozen = self._frozen
        if frozen is not None:
            return int(np.count_nonzero(np.diff(frozen.indptr)))
        return len(postings)

    @property
    def is_frozen(self) -> bool:
        return self._frozen is not None

    @property
    def average_doc_length(self) -> float:
        n = self._n
        return float(self._cumlens[n - 1]) / n if n else 0.0

    def doc_length(self, doc_id: int) -> float:
        if not 0 <= doc_id < self._n:
            raise IndexError(f"document {doc_id} not in index")
        return float(self._doclens[doc_id])

    @property
    def doc_lengths(self) -> NDArray[np.float64]:
        return self._doclens[: self._n].copy()

    def postings(self, token_id: int) -> list[tuple[int, float]]:
        """Committed postings list of token_id as (doc_id, weight) pairs."""
        n = self._n
        postings = self._postings
        ids, weights = self._postings_arrays(token_id, n, postings, self._frozen)
        return list(zip(ids.tolist(), weights.tolist()))

    # -------------------------------------------------------------------------
    # Insertion
    # -------------------------------------------------------------------------

    def _grow(self, capacity: int) -> None:
        doclens = np.zeros(capacity, dtype=np.float64)
        cumlens = np.zeros(capacity, dtype=np.float64)
        doclens[: self._n] = self._doclens[: self._n]
        cumlens[: self._n] = self._cumlens[: self._n]
        self._doclens = doclens
        self._cumlens = cumlens

    def append(self, vec: Mapping[int, float]) -> int:
        """
        Index one sparse vector (or bag of words) and return its doc id.

        Doc ids are assigned sequentially from 0; appending the same vector
        twice yields two documents. Zero weights are skipped.
        """
        entries: list[tuple[int, float]] = []
        for token_id, weight in vec.items():
            weight = float(weight)
            if not math.isfinite(weight):
                raise InvalidParameter(f"non-finite weight {weight} for token {token_id}")
            if token_id < 0:
                raise InvalidParameter(f"negative token id {token_id}")
            if weight != 0.0:
                entries.append((int(token_id), weight))

        with self._lock:
            if self._frozen is not None:
                raise InvalidParameter("cannot append to a frozen index")
            doc_id = self._n
            length = 0.0
            for token_id, weight in entries:
                plist = self._postings.get(token_id)
                if plist is None:
                    plist = self._postings[token_id] = ([], [])
                plist[1].append(weight)
                plist[0].append(doc_id)
                length += abs(weight)

            if doc_id == len(self._doclens):
                self._grow(2 * len(self._doclens))
            self._doclens[doc_id] = length
            self._cumlens[doc_id] = length + (self._cumlens[doc_id - 1] if doc_id else 0.0)
            self._n = doc_id + 1
        return doc_id

    def extend(self, vectors: Sequence[Mapping[int, float]]) -> list[int]:
        """Append several vectors; returns their doc ids in order."""
        return [self.append(vec) for vec in vectors]

    def append_text(self, text: str, tokenizer: Tokenizer | None = None) -> int:
        """Vectorize text with the attached model and append it."""
        return self.append(self._vectorize(text, tokenizer))

    def freeze(self) -> BM25InvertedFile:
        """Convert postings to the read-only CSR layout; further appends fail."""
        with self._lock:
            if self._frozen is None:
                # readers take _postings before _frozen; keep this order
                self._frozen = self.to_sparse_matrix()
                self._postings = {}
                self._doclens = self._doclens[: self._n].copy()
                self._cumlens = self._cumlens[: self._n].copy()
                logger.debug("Froze index: %d docs, %d postings", self._n, self._frozen.nnz)
        return self

    # -------------------------------------------------------------------------
    # Matrix views
    # -------------------------------------------------------------------------

    def to_sparse_matrix(self) -> csr_matrix:
        """Postings as a CSR matrix (tokens x docs) holding float32 weights."""
        n = self._n
        postings = dict(self._postings)
        frozen = self._frozen
        if frozen is not None:
            return frozen
        n_rows = max(postings) + 1 if postings else 0
        indptr = np.zeros(n_rows + 1, dtype=np.int64)
        ids_parts: list[NDArray] = []
        weight_parts: list[NDArray] = []
        for token_id in range(n_rows):
            ids, weights = self._postings_arrays(token_id, n, postings, None)
            indptr[token_id + 1] = len(ids)
            ids_parts.append(ids)
            weight_parts.append(weights)
        np.cumsum(indptr, out=indptr)
        indices = np.concatenate(ids_parts) if ids_parts else np.zeros(0, dtype=np.int64)
        data = np.concatenate(weight_parts) if weight_parts else np.zeros(0, dtype=np.float32)
        return csr_matrix(
            (data.astype(np.float32), indices.astype(np.int32), indptr), shape=(n_rows, n)
        )

    @classmethod
    def from_sparse_matrix(
        cls,
        matrix: csr_matrix,
        doc_lengths: NDArray[np.float64],
        model: VectorModel | None = None,
        params: BM25Parameters | None = None,
        frozen: bool = False,
    ) -> BM25InvertedFile:
        """
        Rebuild an index from its CSR postings and document lengths.

        With frozen=True the matrix is used as the read-only layout,
        otherwise postings are copied into appendable lists.
        """
        index = cls(model, params)
        n = len(doc_lengths)
        index._doclens = np.array(doc_lengths, dtype=np.float64)
        index._cumlens = np.cumsum(index._doclens)
        index._n = n
        if not frozen:
            index._grow(max(_INITIAL_CAPACITY, 2 * n))
        if frozen:
            index._frozen = matrix
        else:
            indptr, indices, data = matrix.indptr, matrix.indices, matrix.data
            for token_id in np.flatnonzero(np.diff(indptr)).tolist():
                start, end = indptr[token_id], indptr[token_id + 1]
                index._postings[token_id] = (
                    indices[start:end].tolist(),
                    data[start:end].tolist(),
                )
        return index

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @staticmethod
    def _postings_arrays(
        token_id: int,
        n: int,
        postings: dict[int, tuple[list[int], list[float]]],
        frozen: csr_matrix | None,
    ) -> tuple[NDArray[np.int64], NDArray[np.float32]]:
        if frozen is not None:
            if not 0 <= token_id < frozen.shape[0]:
                return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float32)
            start, end = frozen.indptr[token_id], frozen.indptr[token_id + 1]
            return (
                frozen.indices[start:end].astype(np.int64),
                frozen.data[start:end].astype(np.float32),
            )
        plist = postings.get(token_id)
        if plist is None:
            return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float32)
        ids, weights = plist
        cut = bisect_left(ids, n)
        return np.asarray(ids[:cut], dtype=np.int64), np.asarray(weights[:cut], dtype=np.float32)

    def _vectorize(self, text: str, tokenizer: Tokenizer | None) -> dict[int, float]:
        if self.model is None:
            raise InvalidParameter("text queries need an index built with a VectorModel")
        tokenizer = tokenizer or Tokenizer(self.model.vocabulary.config)
        return self.model.vectorize_text(tokenizer, text)

    def search(
        self,
        query: Query,
        k: int,
        accept_postinglist: Callable[[int], bool] | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> list[SearchResult]:
        """
        Top-k documents for a query.

        Args:
            query: Sparse vector (token id -> weight) or text; text is
                vectorized with the attached model.
            k: Maximum number of results.
            accept_postinglist: Predicate on token ids; rejected postings lists
                are not visited (e.g. to skip stop-word-like long lists).
            tokenizer: Tokenizer for text queries (default: one built from
                the model's vocabulary config).

        Returns:
            SearchResult(doc_id, score) sorted by descending score, ties by
            ascending doc id. Only documents sharing a visited token with the
            query are returned.
        """
        if isinstance(query, str):
            query = self._vectorize(query, tokenizer)
        if k <= 0 or not query:
            return []

        # snapshot: every read below is bounded by the committed doc count.
        # freeze() publishes _frozen before it empties _postings, so postings
        # must be read first.
        n = self._n
        postings = self._postings
        frozen = self._frozen
        doclens = self._doclens
        if n == 0:
            return []
        avgdl = max(float(self._cumlens[n - 1]) / n, self.params.epsilon)

        lists = []
        for token_id, qweight in query.items():
            if qweight == 0:
                continue
            if accept_postinglist is not None and not accept_postinglist(token_id):
                continue
            ids, weights = self._postings_arrays(token_id, n, postings, frozen)
            if len(ids):
                lists.append((float(qweight), ids, weights))
        if not lists:
            return []

        # shorter postings lists first
        lists.sort(key=lambda item: len(item[1]))

        k1, b, eps = self.params.k1, self.params.b, self.params.epsilon
        cand_parts = []
        score_parts = []
        for qweight, ids, weights in lists:
            idf = idf_lucene(len(ids), n)
            norm = 1.0 - b + b * (doclens[ids] / avgdl)
            contrib = qweight * idf * saturate_bm25(weights.astype(np.float64), k1, norm, eps)
            cand_parts.append(ids)
            score_parts.append(contrib)

        # accumulator sized by the distinct candidates, not by the corpus
        candidates, inverse = np.unique(np.concatenate(cand_parts), return_inverse=True)
        scores = np.bincount(inverse.ravel(), weights=np.concatenate(score_parts))
        positive = scores > 0
        candidates, scores = candidates[positive], scores[positive]

        best = heapq.nsmallest(k, zip((-scores).tolist(), candidates.tolist()))
        return [SearchResult(doc_id, -neg) for neg, doc_id in best]

    def batch_search(
        self,
        queries: Sequence[Query],
        k: int,
        accept_postinglist: Callable[[int], bool] | None = None,
        tokenizer: Tokenizer | None = None,
        workers: int | None = None,
    ) -> list[list[SearchResult]]:
        """Search several queries, in parallel for large batches."""
        if tokenizer is None and self.model is not None:
            tokenizer = Tokenizer(self.model.vocabulary.config)
        base = tokenizer or Tokenizer()

        def run(tok: Tokenizer, query: Query) -> list[SearchResult]:
            return self.search(query, k, accept_postinglist, tok)

        return map_with_context(base.copy, run, queries, workers=workers)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self, path, parent_group: str = "/") -> None:
        from textsearch.persistence import save

        save(self, path, parent_group)

    @classmethod
    def load(cls, path, parent_group: str = "/", staticgraph: bool = False) -> BM25InvertedFile:
        from textsearch.persistence import load_index

        return load_index(path, parent_group, staticgraph)


def search(
    index: BM25InvertedFile,
    query: Query,
    k: int,
    accept_postinglist: Callable[[int], bool] | None = None,
    tokenizer: Tokenizer | None = None,
) -> list[SearchResult]:
    """Functional form of BM25InvertedFile.search."""
    return index.search(query, k, accept_postinglist, tokenizer)


__all__ = [
    "BM25InvertedFile",
    "BM25Parameters",
    "SearchResult",
    "search",
    "idf_lucene",
    "saturate_bm25",
]
