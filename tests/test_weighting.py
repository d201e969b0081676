import math

import numpy as np
import pytest

from textsearch import (
    BinaryGlobalWeighting,
    BinaryLocalWeighting,
    EntropyWeighting,
    FreqWeighting,
    IdfWeighting,
    InvalidParameter,
    TfWeighting,
    TpWeighting,
    Vocabulary,
)
from textsearch.weighting import (
    global_weighting_from_dict,
    local_weighting_from_dict,
    weighting_to_dict,
)


@pytest.fixture
def voc():
    return Vocabulary.from_corpus([["cat", "dog"], ["dog", "bird"], ["cat", "cat", "bird"]])


class TestGlobal:
    def test_binary(self, voc):
        assert np.array_equal(BinaryGlobalWeighting().fit(voc), np.ones(3))

    def test_idf(self, voc):
        weights = IdfWeighting().fit(voc)
        assert np.allclose(weights, math.log(1 + 4 / 3))

    def test_idf_rare_tokens_weigh_more(self):
        voc = Vocabulary.from_corpus([["a", "b"], ["a"], ["a"]])
        weights = IdfWeighting().fit(voc)
        assert weights[voc.id_of("b")] > weights[voc.id_of("a")] > 0

    def test_idf_invalid_smooth(self):
        with pytest.raises(InvalidParameter):
            IdfWeighting(smooth=-1.0)


class TestEntropy:
    @pytest.fixture
    def labelled(self):
        docs = [["a", "b"], ["a", "b"], ["b"], ["b"]]
        voc = Vocabulary.from_corpus(docs)
        bows = [voc.bagofwords(d) for d in docs]
        return voc, bows, [0, 0, 1, 1]

    def test_discriminative_token(self, labelled):
        voc, bows, labels = labelled
        weights = EntropyWeighting().fit(voc, bows, labels)
        assert weights[voc.id_of("a")] == pytest.approx(1.0)
        assert weights[voc.id_of("b")] == pytest.approx(0.0, abs=1e-12)

    def test_unbalanced_classes(self):
        docs = [["a"], ["a"], ["a"], ["a", "b"]]
        voc = Vocabulary.from_corpus(docs)
        bows = [voc.bagofwords(d) for d in docs]
        labels = ["x", "x", "x", "y"]
        balanced = EntropyWeighting().fit(voc, bows, labels)
        plain = EntropyWeighting(weights="none").fit(voc, bows, labels)
        # "a" occurs in every document of both classes
        assert balanced[voc.id_of("a")] == pytest.approx(0.0, abs=1e-12)
        assert plain[voc.id_of("a")] > 0.0
        assert balanced[voc.id_of("b")] == pytest.approx(1.0)

    def test_lowerweight(self, labelled):
        voc, bows, labels = labelled
        weights = EntropyWeighting(smooth=1.0, lowerweight=0.5).fit(voc, bows, labels)
        assert np.all((weights == 0.0) | (weights >= 0.5))

    def test_explicit_class_weights(self, labelled):
        voc, bows, labels = labelled
        weights = EntropyWeighting(weights=(1.0, 1.0)).fit(voc, bows, labels)
        assert weights[voc.id_of("a")] == pytest.approx(1.0)
        with pytest.raises(InvalidParameter):
            EntropyWeighting(weights=(1.0, 1.0, 1.0)).fit(voc, bows, labels)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"smooth": -0.1},
            {"lowerweight": -0.5},
            {"lowerweight": 1.5},
            {"weights": "other"},
            {"weights": (1.0, -1.0)},
        ],
    )
    def test_invalid_params(self, kwargs):
        with pytest.raises(InvalidParameter):
            EntropyWeighting(**kwargs)

    def test_requires_labels(self, labelled):
        voc, bows, labels = labelled
        with pytest.raises(InvalidParameter):
            EntropyWeighting().fit(voc, bows, None)
        with pytest.raises(InvalidParameter):
            EntropyWeighting().fit(voc, bows, labels[:2])
        with pytest.raises(InvalidParameter):
            EntropyWeighting().fit(voc, bows, [0, 0, 0, 0])


@pytest.mark.parametrize(
    "weighting,expected",
    [
        (BinaryLocalWeighting(), 1.0),
        (TfWeighting(), 0.5),
        (FreqWeighting(), 2.0),
        (TpWeighting(), 0.25),
    ],
)
def test_local_weighting(weighting, expected):
    assert weighting.weight(2, 4, 8) == pytest.approx(expected)


class TestSerialization:
    @pytest.mark.parametrize(
        "weighting",
        [BinaryGlobalWeighting(), IdfWeighting(smooth=0.5), EntropyWeighting(weights=(0.2, 0.8))],
    )
    def test_global_round_trip(self, weighting):
        assert global_weighting_from_dict(weighting_to_dict(weighting)) == weighting

    @pytest.mark.parametrize("weighting", [BinaryLocalWeighting(), TfWeighting(), FreqWeighting(), TpWeighting()])
    def test_local_round_trip(self, weighting):
        assert local_weighting_from_dict(weighting_to_dict(weighting)) == weighting

    def test_unknown_scheme(self):
        with pytest.raises(InvalidParameter):
            global_weighting_from_dict({"name": "bm42"})
