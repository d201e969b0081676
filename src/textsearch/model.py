"""
Vector model: turns bags of words into weighted sparse vectors.

Usage:
    from textsearch import IdfWeighting, TfWeighting, Tokenizer, VectorModel

    tok = Tokenizer()
    model = VectorModel.from_texts(IdfWeighting(), TfWeighting(), tok, corpus)
    vec = model.vectorize_text(tok, "some query")
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from textsearch import sparse
from textsearch.errors import InvalidParameter
from textsearch.parallel import map_with_context
from textsearch.tokenizer import Tokenizer, tokenize_corpus
from textsearch.vocabulary import BOW, Vocabulary

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from textsearch.weighting import GlobalWeighting, LocalWeighting

logger = logging.getLogger(__name__)

# Weights below this value are dropped from vectors
DEFAULT_MINWEIGHT = 1e-6


class VectorModel:
    """
    Fitted weighting model over a vocabulary.

    Args:
        global_weighting: Global weighting scheme (BinaryGlobalWeighting, IdfWeighting, EntropyWeighting).
        local_weighting: Local weighting scheme (BinaryLocalWeighting, TfWeighting, FreqWeighting, TpWeighting).
        vocabulary: Vocabulary the weights are indexed by. The model keeps a
            private copy; later changes to vocabulary do not reach it.
        weights: Global weight per token id.
        mindocs: Tokens appearing in fewer documents are ignored.

    Use VectorModel.fit to compute the weights from corpus statistics.
    """

    def __init__(
        self,
        global_weighting: GlobalWeighting,
        local_weighting: LocalWeighting,
        vocabulary: Vocabulary,
        weights: NDArray[np.float64],
        mindocs: int = 1,
    ):
        weights = np.array(weights, dtype=np.float64)
        if weights.shape != (len(vocabulary),):
            raise InvalidParameter(
                f"expected {len(vocabulary)} global weights, got shape {weights.shape}"
            )
        if mindocs < 0:
            raise InvalidParameter(f"mindocs must be >= 0, got {mindocs}")
        self.global_weighting = global_weighting
        self.local_weighting = local_weighting
        self.vocabulary = vocabulary.subset(range(len(weights)))
        self.weights = weights
        self.weights.setflags(write=False)
        self.mindocs = mindocs
        self._ndocs = self.vocabulary.ndocs_array

    @classmethod
    def fit(
        cls,
        global_weighting: GlobalWeighting,
        local_weighting: LocalWeighting,
        vocabulary: Vocabulary,
        corpus: Sequence[Mapping[int, int]] | None = None,
        labels: Sequence[Any] | None = None,
        mindocs: int = 1,
    ) -> VectorModel:
        """
        Fit the global weights over vocabulary.

        Args:
            corpus: Bags of words, required by EntropyWeighting.
            labels: One label per bag of words, required by EntropyWeighting.
        """
        weights = global_weighting.fit(vocabulary, corpus, labels)
        model = cls(global_weighting, local_weighting, vocabulary, weights, mindocs)
        logger.debug(
            "Fitted %s/%s model over %d tokens",
            global_weighting.name,
            local_weighting.name,
            len(vocabulary),
        )
        return model

    @classmethod
    def from_texts(
        cls,
        global_weighting: GlobalWeighting,
        local_weighting: LocalWeighting,
        tokenizer: Tokenizer,
        texts: Sequence[str],
        labels: Sequence[Any] | None = None,
        mindocs: int = 1,
        workers: int | None = None,
    ) -> VectorModel:
        """Tokenize texts, build their vocabulary and fit a model over it."""
        corpus = tokenize_corpus(tokenizer, texts, workers=workers)
        voc = Vocabulary.from_corpus(corpus, config=tokenizer.config)
        bows = [voc.bagofwords(tokens) for tokens in corpus] if labels is not None else None
        return cls.fit(global_weighting, local_weighting, voc, bows, labels, mindocs)

    def __len__(self) -> int:
        return len(self.vocabulary)

    def __repr__(self) -> str:
        return (
            f"VectorModel({self.global_weighting.name}, {self.local_weighting.name}, "
            f"tokens={len(self)}, mindocs={self.mindocs})"
        )

    def weight(self, token_id: int) -> float:
        """Global weight of token_id (0 for unknown ids)."""
        if 0 <= token_id < len(self.weights):
            return float(self.weights[token_id])
        return 0.0

    # -------------------------------------------------------------------------
    # Vectorization
    # -------------------------------------------------------------------------

    def vectorize(
        self,
        bow: Mapping[int, int],
        normalize: bool = True,
        minweight: float = DEFAULT_MINWEIGHT,
        mindocs: int | None = None,
    ) -> sparse.SVEC:
        """
        Weighted sparse vector of a bag of words.

        Unknown token ids and tokens with fewer than mindocs documents are
        dropped silently, as are weights below minweight.
        """
        if not bow:
            return {}
        mindocs = self.mindocs if mindocs is None else mindocs
        maxcount = max(bow.values())
        doclen = sum(bow.values())
        if maxcount <= 0 or doclen <= 0:
            return {}

        vocsize = len(self.weights)
        weights = self.weights
        ndocs = self._ndocs
        local = self.local_weighting.weight
        vec: sparse.SVEC = {}
        for token_id, count in bow.items():
            if count <= 0 or not 0 <= token_id < vocsize or ndocs[token_id] < mindocs:
                continue
            w = float(weights[token_id]) * local(count, maxcount, doclen)
            if w >= minweight:
                vec[token_id] = w

        return sparse.normalize_inplace(vec) if normalize else vec

    def vectorize_tokens(self, tokens: Iterable[str], **kwargs) -> sparse.SVEC:
        return self.vectorize(self.vocabulary.bagofwords(tokens), **kwargs)

    def vectorize_text(self, tokenizer: Tokenizer, text: str, **kwargs) -> sparse.SVEC:
        """Tokenize text with tokenizer and vectorize it; the tokenizer config must match."""
        self.vocabulary.check_config(tokenizer.config)
        return self.vectorize_tokens(tokenizer.tokenize(text), **kwargs)

    def vectorize_corpus(
        self,
        tokenizer: Tokenizer,
        texts: Sequence[str],
        workers: int | None = None,
        **kwargs,
    ) -> list[sparse.SVEC]:
        """Vectorize a list of texts, in parallel for large corpora (one tokenizer copy per worker)."""
        self.vocabulary.check_config(tokenizer.config)

        def run(tok: Tokenizer, text: str) -> sparse.SVEC:
            return self.vectorize_tokens(tok.tokenize(text), **kwargs)

        return map_with_context(tokenizer.copy, run, texts, workers=workers)

    def decode(self, vec: Mapping[int, float]) -> dict[str, float]:
        """Map a vector's token ids back to token strings."""
        voc = self.vocabulary
        return {voc.token_of(k): v for k, v in vec.items() if 0 <= k < len(voc)}

    # -------------------------------------------------------------------------
    # Pruning
    # -------------------------------------------------------------------------

    def _restrict(self, ids: NDArray[np.int64]) -> VectorModel:
        ids = np.sort(ids)
        voc = self.vocabulary.subset(ids.tolist())
        return VectorModel(
            self.global_weighting, self.local_weighting, voc, self.weights[ids], self.mindocs
        )

    def prune(self, lowerweight: float) -> VectorModel:
        """New model without the tokens whose global weight is below lowerweight."""
        ids = np.flatnonzero(self.weights >= lowerweight)
        model = self._restrict(ids)
        logger.debug("Pruned model from %d to %d tokens (lowerweight=%g)", len(self), len(model), lowerweight)
        return model

    def prune_select_top(self, k: int | float) -> VectorModel:
        """
        New model with the best tokens by global weight.

        Args:
            k: Number of tokens to keep (int >= 0), or the ratio of the
                vocabulary to keep (float in (0, 1]). Ties are broken by
                ascending token id.
        """
        n = len(self)
        if isinstance(k, (bool, np.bool_)):
            raise InvalidParameter(f"k must be an int or a float ratio, got {k!r}")
        if isinstance(k, (float, np.floating)):
            if not 0.0 < k <= 1.0:
                raise InvalidParameter(f"ratio must be in (0, 1], got {k}")
            # rounding absorbs float error such as 0.28 * 25 == 7.000000000000001
            k = math.ceil(round(k * n, 9))
        elif k < 0:
            raise InvalidParameter(f"k must be >= 0, got {k}")
        k = min(int(k), n)

        # stable sort on -weight keeps ascending ids among equal weights
        order = np.argsort(-self.weights, kind="stable")
        model = self._restrict(order[:k])
        logger.debug("Selected top %d of %d tokens", len(model), n)
        return model

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self, path, parent_group: str = "/") -> None:
        from textsearch.persistence import save

        save(self, path, parent_group)

    @classmethod
    def load(cls, path, parent_group: str = "/") -> VectorModel:
        from textsearch.persistence import load_model

        return load_model(path, parent_group)


__all__ = ["VectorModel", "DEFAULT_MINWEIGHT", "BOW"]
