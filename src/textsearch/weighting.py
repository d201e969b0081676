"""
Term weighting schemes.

A vector model combines one global weighting (computed once per vocabulary
from corpus statistics) with one local weighting (computed per document from
its bag of words):

    weight(t, d) = global[t] * local(count(t, d), max_count(d), length(d))

Both families are closed sets of small frozen dataclasses; new schemes are
added to the registries at the bottom of this module.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Union

import numpy as np
from scipy.sparse import csr_matrix

from textsearch.errors import InvalidParameter

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from textsearch.vocabulary import Vocabulary

# Numerical stability for divisions by smoothed counts
EPSILON = 1e-9


# =============================================================================
# Global weighting
# =============================================================================


@dataclass(frozen=True)
class BinaryGlobalWeighting:
    """The weight is 1 for known tokens, 0 for out of vocabulary tokens."""

    name: ClassVar[str] = "binary"

    def fit(self, voc: Vocabulary, corpus=None, labels=None) -> NDArray[np.float64]:
        return np.ones(len(voc), dtype=np.float64)


@dataclass(frozen=True)
class IdfWeighting:
    """
    Inverse document frequency weighting.

        idf(t) = log(1 + (N + smooth) / (ndocs(t) + smooth))

    The additive smoothing keeps the weight finite for tokens with no
    recorded documents and strictly positive for tokens present everywhere.
    """

    smooth: float = 1.0
    name: ClassVar[str] = "idf"

    def __post_init__(self):
        if self.smooth < 0:
            raise InvalidParameter(f"smooth must be >= 0, got {self.smooth}")

    def fit(self, voc: Vocabulary, corpus=None, labels=None) -> NDArray[np.float64]:
        ndocs = voc.ndocs_array.astype(np.float64)
        n = float(voc.corpus_size)
        return np.log(1.0 + (n + self.smooth) / np.maximum(ndocs + self.smooth, EPSILON))


@dataclass(frozen=True)
class EntropyWeighting:
    """
    Entropy weighting: the empirical entropy of a token's distribution over
    class labels measures how little it discriminates between classes.

        w(t) = 1 - H(p_t) / log(n_classes)

    where p_t is the (class-weighted, smoothed) distribution of documents
    containing t over classes. Tokens concentrated in one class get weight 1,
    evenly spread tokens get 0. Weights below lowerweight are set to 0.

    Args:
        smooth: Additive term for every class count (avoids zero-count classes).
        lowerweight: Weights below this value become 0 (in [0, 1]).
        weights: "balance" (inverse class frequency, normalized to sum 1),
            "none" (uniform), or an explicit sequence with one weight per
            class in sorted label order.
    """

    smooth: float = 0.0
    lowerweight: float = 0.0
    weights: str | tuple[float, ...] = "balance"
    name: ClassVar[str] = "entropy"

    def __post_init__(self):
        if self.smooth < 0:
            raise InvalidParameter(f"smooth must be >= 0, got {self.smooth}")
        if not 0.0 <= self.lowerweight <= 1.0:
            raise InvalidParameter(f"lowerweight must be in [0, 1], got {self.lowerweight}")
        if isinstance(self.weights, str):
            if self.weights not in ("balance", "none"):
                raise InvalidParameter(f"unknown class weights {self.weights!r}")
        else:
            weights = tuple(float(w) for w in self.weights)
            if any(w < 0 for w in weights):
                raise InvalidParameter("class weights must be non-negative")
            object.__setattr__(self, "weights", weights)

    def class_weights(self, class_sizes: NDArray[np.float64]) -> NDArray[np.float64]:
        if self.weights == "none":
            return np.ones(len(class_sizes), dtype=np.float64)
        if self.weights == "balance":
            inv = 1.0 / np.maximum(class_sizes, 1.0)
            return inv / inv.sum()
        weights = np.asarray(self.weights, dtype=np.float64)
        if len(weights) != len(class_sizes):
            raise InvalidParameter(
                f"expected {len(class_sizes)} class weights, got {len(weights)}"
            )
        return weights

    def fit(
        self,
        voc: Vocabulary,
        corpus: Sequence[Mapping[int, int]] | None = None,
        labels: Sequence[Any] | None = None,
    ) -> NDArray[np.float64]:
        if corpus is None or labels is None:
            raise InvalidParameter("entropy weighting requires a corpus of bags of words and labels")
        if len(corpus) != len(labels):
            raise InvalidParameter(
                f"corpus and labels differ in length: {len(corpus)} != {len(labels)}"
            )
        classes, label_idx = np.unique(np.asarray(labels), return_inverse=True)
        n_classes = len(classes)
        if n_classes < 2:
            raise InvalidParameter("entropy weighting needs at least two classes")

        vocsize = len(voc)
        rows: list[int] = []
        cols: list[int] = []
        for doc_idx, bow in enumerate(corpus):
            for token_id in bow:
                if 0 <= token_id < vocsize:
                    rows.append(doc_idx)
                    cols.append(token_id)
        occurrences = csr_matrix(
            (np.ones(len(rows), dtype=np.float64), (rows, cols)), shape=(len(corpus), vocsize)
        )
        membership = csr_matrix(
            (np.ones(len(corpus), dtype=np.float64), (label_idx, np.arange(len(corpus)))),
            shape=(n_classes, len(corpus)),
        )

        # (n_classes, vocsize) documents per class containing each token
        counts = (membership @ occurrences).toarray().astype(np.float64)
        class_sizes = np.bincount(label_idx, minlength=n_classes).astype(np.float64)
        dist = counts * self.class_weights(class_sizes)[:, np.newaxis] + self.smooth

        total = dist.sum(axis=0)
        with np.errstate(divide="ignore", invalid="ignore"):
            p = np.where(total > 0, dist / np.where(total > 0, total, 1.0), 0.0)
            plogp = np.where(p > 0, p * np.log(np.where(p > 0, p, 1.0)), 0.0)
        entropy = -plogp.sum(axis=0)
        weights = 1.0 - entropy / math.log(n_classes)
        weights[total <= 0] = 0.0
        weights = np.clip(weights, 0.0, 1.0)
        weights[weights < self.lowerweight] = 0.0
        return weights


# =============================================================================
# Local weighting
# =============================================================================


@dataclass(frozen=True)
class BinaryLocalWeighting:
    """The weight is 1 for tokens present in the document."""

    name: ClassVar[str] = "binary"

    def weight(self, count: int, maxcount: int, doclen: int) -> float:
        return 1.0


@dataclass(frozen=True)
class TfWeighting:
    """Term frequency normalized by the most frequent token of the document."""

    name: ClassVar[str] = "tf"

    def weight(self, count: int, maxcount: int, doclen: int) -> float:
        return count / maxcount


@dataclass(frozen=True)
class FreqWeighting:
    """Raw occurrence count."""

    name: ClassVar[str] = "freq"

    def weight(self, count: int, maxcount: int, doclen: int) -> float:
        return float(count)


@dataclass(frozen=True)
class TpWeighting:
    """Term probability: occurrences over the number of tokens in the document."""

    name: ClassVar[str] = "tp"

    def weight(self, count: int, maxcount: int, doclen: int) -> float:
        return count / doclen


GlobalWeighting = Union[BinaryGlobalWeighting, IdfWeighting, EntropyWeighting]
LocalWeighting = Union[BinaryLocalWeighting, TfWeighting, FreqWeighting, TpWeighting]

GLOBAL_WEIGHTINGS: dict[str, type] = {
    cls.name: cls for cls in (BinaryGlobalWeighting, IdfWeighting, EntropyWeighting)
}
LOCAL_WEIGHTINGS: dict[str, type] = {
    cls.name: cls for cls in (BinaryLocalWeighting, TfWeighting, FreqWeighting, TpWeighting)
}


def weighting_to_dict(weighting: GlobalWeighting | LocalWeighting) -> dict[str, Any]:
    params = asdict(weighting)
    if isinstance(params.get("weights"), tuple):
        params["weights"] = list(params["weights"])
    return {"name": weighting.name, "params": params}


def _from_dict(registry: dict[str, type], data: Mapping[str, Any]):
    cls = registry.get(data.get("name"))
    if cls is None:
        raise InvalidParameter(f"unknown weighting scheme {data.get('name')!r}")
    params = dict(data.get("params", {}))
    if isinstance(params.get("weights"), list):
        params["weights"] = tuple(params["weights"])
    return cls(**params)


def global_weighting_from_dict(data: Mapping[str, Any]) -> GlobalWeighting:
    return _from_dict(GLOBAL_WEIGHTINGS, data)


def local_weighting_from_dict(data: Mapping[str, Any]) -> LocalWeighting:
    return _from_dict(LOCAL_WEIGHTINGS, data)


__all__ = [
    "BinaryGlobalWeighting",
    "IdfWeighting",
    "EntropyWeighting",
    "BinaryLocalWeighting",
    "TfWeighting",
    "FreqWeighting",
    "TpWeighting",
    "GlobalWeighting",
    "LocalWeighting",
    "GLOBAL_WEIGHTINGS",
    "LOCAL_WEIGHTINGS",
    "weighting_to_dict",
    "global_weighting_from_dict",
    "local_weighting_from_dict",
]
