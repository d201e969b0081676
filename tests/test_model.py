import math

import numpy as np
import pytest

from textsearch import (
    BinaryGlobalWeighting,
    EntropyWeighting,
    FreqWeighting,
    IdfWeighting,
    IncompatibleConfig,
    InvalidParameter,
    TextConfig,
    TfWeighting,
    Tokenizer,
    VectorModel,
    Vocabulary,
)
from textsearch import sparse

IDF = math.log(1 + 4 / 3)


class TestVectorize:
    def test_single_token(self, model, tokenizer):
        assert model.vectorize_text(tokenizer, "cat") == {0: pytest.approx(1.0)}

    def test_tf_weights(self, model, tokenizer):
        vec = model.vectorize_text(tokenizer, "cat cat bird")
        assert vec.keys() == {0, 2}
        assert vec[0] == pytest.approx(2 / math.sqrt(5))
        assert vec[2] == pytest.approx(1 / math.sqrt(5))
        assert sparse.norm(vec) == pytest.approx(1.0)

    def test_unnormalized(self, model):
        vec = model.vectorize({0: 2, 2: 1}, normalize=False)
        assert vec == {0: pytest.approx(IDF), 2: pytest.approx(IDF / 2)}

    @pytest.mark.parametrize("text", ["zebra", "", "zebra giraffe"])
    def test_out_of_vocabulary_is_empty(self, model, tokenizer, text):
        assert model.vectorize_text(tokenizer, text) == {}

    def test_unknown_ids_dropped(self, model):
        assert model.vectorize({0: 1, 99: 5, -1: 2}) == {0: pytest.approx(1.0)}

    def test_mindocs(self, tokenizer, corpus):
        model = VectorModel.from_texts(IdfWeighting(), TfWeighting(), tokenizer, corpus, mindocs=3)
        assert model.vectorize_text(tokenizer, "cat dog") == {}

    def test_minweight(self, model):
        assert model.vectorize({0: 1}, minweight=10.0) == {}

    def test_rejects_other_config(self, model):
        with pytest.raises(IncompatibleConfig):
            model.vectorize_text(Tokenizer(TextConfig(del_punc=True)), "cat")

    @pytest.mark.parametrize("workers", [1, 4])
    def test_vectorize_corpus(self, model, tokenizer, workers):
        texts = ["cat dog", "bird"] * 10
        vectors = model.vectorize_corpus(tokenizer, texts, workers=workers)
        assert vectors == [model.vectorize_text(tokenizer, t) for t in texts]

    def test_decode(self, model, tokenizer):
        assert model.decode(model.vectorize_text(tokenizer, "dog")) == {"dog": pytest.approx(1.0)}

    def test_freq_local_weighting(self, tokenizer, corpus):
        model = VectorModel.from_texts(IdfWeighting(), FreqWeighting(), tokenizer, corpus)
        vec = model.vectorize_text(tokenizer, "cat cat cat", normalize=False)
        assert vec == {0: pytest.approx(3 * IDF)}


class TestModel:
    def test_weights_are_read_only(self, model):
        assert not model.weights.flags.writeable
        with pytest.raises(ValueError):
            model.weights[0] = 1.0

    def test_weight(self, model):
        assert model.weight(0) == pytest.approx(IDF)
        assert model.weight(42) == 0.0

    def test_weights_shape_checked(self, model):
        with pytest.raises(InvalidParameter):
            VectorModel(IdfWeighting(), TfWeighting(), model.vocabulary, np.ones(2))

    def test_entropy_from_texts(self, tokenizer):
        texts = ["good movie", "good film", "bad movie", "bad film"]
        labels = ["pos", "pos", "neg", "neg"]
        model = VectorModel.from_texts(EntropyWeighting(), TfWeighting(), tokenizer, texts, labels)
        voc = model.vocabulary
        assert model.weight(voc.id_of("good")) == pytest.approx(1.0)
        assert model.weight(voc.id_of("movie")) == pytest.approx(0.0, abs=1e-12)
        # "movie" carries no weight, the vector only keeps "good"
        assert model.vectorize_text(tokenizer, "good movie").keys() == {voc.id_of("good")}

    def test_keeps_vocabulary_snapshot(self):
        voc = Vocabulary.from_corpus([["a"], ["b"]])
        model = VectorModel.fit(IdfWeighting(), TfWeighting(), voc)
        voc.append(["c"])
        assert model.vocabulary.tokens == ["a", "b"]
        assert model.vocabulary.corpus_size == 2
        assert len(model) == len(model.weights) == 2

    def test_fit_requires_corpus_for_entropy(self):
        voc = Vocabulary.from_corpus([["a"], ["b"]])
        with pytest.raises(InvalidParameter):
            VectorModel.fit(EntropyWeighting(), TfWeighting(), voc)


class TestPrune:
    @pytest.mark.parametrize("k,expected", [(0, []), (2, ["cat", "dog"]), (3, ["cat", "dog", "bird"]), (10, ["cat", "dog", "bird"])])
    def test_select_top_ties_by_id(self, model, k, expected):
        assert model.prune_select_top(k).vocabulary.tokens == expected

    @pytest.mark.parametrize("ratio,size", [(0.5, 2), (0.1, 1), (1.0, 3)])
    def test_select_top_ratio(self, model, ratio, size):
        assert len(model.prune_select_top(ratio)) == size

    @pytest.mark.parametrize("ratio,size", [(0.28, 7), (0.56, 14), (0.04, 1), (0.3, 8)])
    def test_select_top_ratio_rounding(self, ratio, size):
        voc = Vocabulary.from_corpus([[f"token{i}"] for i in range(25)])
        model = VectorModel.fit(BinaryGlobalWeighting(), TfWeighting(), voc)
        assert len(model.prune_select_top(ratio)) == size

    def test_select_top_by_weight(self, tokenizer):
        model = VectorModel.from_texts(IdfWeighting(), TfWeighting(), tokenizer, ["a b", "a c", "a"])
        pruned = model.prune_select_top(2)
        # "a" is in every document and has the lowest idf
        assert pruned.vocabulary.tokens == ["b", "c"]
        assert np.allclose(pruned.weights, [model.weight(1), model.weight(2)])

    @pytest.mark.parametrize("k", [-1, 0.0, 1.5, True])
    def test_select_top_invalid(self, model, k):
        with pytest.raises(InvalidParameter):
            model.prune_select_top(k)

    def test_prune(self, model):
        assert len(model.prune(IDF / 2)) == 3
        assert len(model.prune(IDF * 2)) == 0

    def test_pruned_model_vectorizes(self, model, tokenizer):
        pruned = model.prune_select_top(2)
        assert pruned.vectorize_text(tokenizer, "bird") == {}
        assert pruned.vectorize_text(tokenizer, "dog") == {1: pytest.approx(1.0)}
