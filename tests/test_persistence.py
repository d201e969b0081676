import numpy as np
import pytest

from textsearch import (
    BM25InvertedFile,
    BM25Parameters,
    CorruptPersistedState,
    EntropyWeighting,
    IdfWeighting,
    InvalidParameter,
    IOFailure,
    TextConfig,
    TfWeighting,
    Tokenizer,
    VectorModel,
    Vocabulary,
    load,
    load_index,
    load_model,
    save,
)

QUERIES = ["cat", "dog bird", "cat cat bird", "zebra"]


class TestModel:
    def test_round_trip(self, model, tokenizer, tmp_path):
        path = tmp_path / "model.npz"
        model.save(path)
        loaded = VectorModel.load(path)
        assert loaded.vocabulary.tokens == model.vocabulary.tokens
        assert loaded.vocabulary.corpus_size == model.vocabulary.corpus_size
        assert loaded.vocabulary.config == model.vocabulary.config
        assert np.array_equal(loaded.weights, model.weights)
        assert loaded.global_weighting == model.global_weighting
        assert loaded.local_weighting == model.local_weighting
        for q in QUERIES:
            assert loaded.vectorize_text(tokenizer, q) == model.vectorize_text(tokenizer, q)

    def test_entropy_parameters_survive(self, tmp_path):
        tok = Tokenizer(TextConfig(del_punc=True, qlist=(3,)))
        model = VectorModel.from_texts(
            EntropyWeighting(smooth=0.5, weights=(0.3, 0.7)),
            TfWeighting(),
            tok,
            ["good movie", "bad movie"],
            ["a", "b"],
            mindocs=2,
        )
        save(model, tmp_path / "m.npz")
        loaded = load_model(tmp_path / "m.npz")
        assert loaded.global_weighting == model.global_weighting
        assert loaded.mindocs == 2
        assert loaded.vocabulary.config.fingerprint() == tok.config.fingerprint()
        assert loaded.vocabulary.tokens == model.vocabulary.tokens


    def test_vocabulary_grown_after_fit(self, tmp_path):
        voc = Vocabulary.from_corpus([["a"], ["b"]])
        model = VectorModel.fit(IdfWeighting(), TfWeighting(), voc)
        voc.append(["c"])
        save(model, tmp_path / "m.npz")
        loaded = load_model(tmp_path / "m.npz")
        assert loaded.vocabulary.tokens == ["a", "b"]
        assert np.array_equal(loaded.weights, model.weights)


class TestIndex:
    def test_round_trip(self, index, tmp_path):
        path = tmp_path / "index.npz"
        index.save(path)
        loaded = BM25InvertedFile.load(path)
        assert not loaded.is_frozen
        assert loaded.n_docs == index.n_docs
        assert np.array_equal(loaded.doc_lengths, index.doc_lengths)
        for q in QUERIES:
            assert loaded.search(q, 3) == index.search(q, 3)
        assert loaded.append_text("bird") == 3

    def test_staticgraph(self, index, tmp_path):
        path = tmp_path / "index.npz"
        index.save(path)
        loaded = load_index(path, staticgraph=True)
        assert loaded.is_frozen
        assert [loaded.search(q, 3) for q in QUERIES] == [index.search(q, 3) for q in QUERIES]
        with pytest.raises(InvalidParameter):
            loaded.append({0: 1.0})

    def test_frozen_index_round_trip(self, index, tmp_path):
        index.freeze()
        index.save(tmp_path / "frozen.npz")
        loaded = load_index(tmp_path / "frozen.npz")
        assert loaded.search("cat", 3) == index.search("cat", 3)

    def test_without_model(self, tmp_path):
        index = BM25InvertedFile(params=BM25Parameters(k1=0.9, b=0.4))
        index.extend([{0: 1.0}, {0: 0.5, 7: 2.0}, {}])
        save(index, tmp_path / "bare.npz")
        loaded = load(tmp_path / "bare.npz")
        assert loaded.model is None
        assert loaded.params == index.params
        assert loaded.n_docs == 3
        assert loaded.postings(7) == [(1, 2.0)]
        assert loaded.search({0: 1.0}, 3) == index.search({0: 1.0}, 3)

    def test_empty_index(self, tmp_path):
        save(BM25InvertedFile(), tmp_path / "empty.npz")
        loaded = load_index(tmp_path / "empty.npz")
        assert loaded.n_docs == 0
        assert loaded.search({0: 1.0}, 3) == []


class TestGroups:
    def test_several_objects_share_a_file(self, model, index, tmp_path):
        path = tmp_path / "all.npz"
        save(model, path, "/models/animals")
        save(index, path, "/indexes/animals")
        save(index, path)
        assert isinstance(load(path, "/models/animals"), VectorModel)
        assert isinstance(load(path, "/indexes/animals"), BM25InvertedFile)
        assert isinstance(load(path), BM25InvertedFile)

    def test_overwrite_group(self, model, index, tmp_path):
        path = tmp_path / "all.npz"
        save(index, path, "g")
        save(model, path, "g")
        assert isinstance(load(path, "g"), VectorModel)

    def test_missing_group(self, model, tmp_path):
        path = tmp_path / "m.npz"
        save(model, path, "a")
        with pytest.raises(CorruptPersistedState):
            load(path, "b")

    def test_wrong_kind(self, model, tmp_path):
        path = tmp_path / "m.npz"
        save(model, path)
        with pytest.raises(CorruptPersistedState):
            load_index(path)

    def test_invalid_group_name(self, model, tmp_path):
        with pytest.raises(InvalidParameter):
            save(model, tmp_path / "m.npz", "a//b")


class TestFailures:
    def test_missing_file(self, tmp_path):
        with pytest.raises(IOFailure):
            load(tmp_path / "nope.npz")

    @pytest.mark.parametrize("content", [b"", b"not an archive at all", b"PK\x03\x04garbage"])
    def test_corrupt_file(self, tmp_path, content):
        path = tmp_path / "bad.npz"
        path.write_bytes(content)
        with pytest.raises(CorruptPersistedState):
            load(path)

    def test_unknown_version(self, model, tmp_path):
        path = tmp_path / "m.npz"
        save(model, path)
        with np.load(path) as archive:
            arrays = dict(archive)
        arrays["format_version"] = np.array(99)
        np.savez(path, **arrays)
        with pytest.raises(CorruptPersistedState):
            load(path)

    def test_missing_array(self, index, tmp_path):
        path = tmp_path / "i.npz"
        save(index, path)
        with np.load(path) as archive:
            arrays = {k: v for k, v in archive.items() if k != "indptr"}
        np.savez(path, **arrays)
        with pytest.raises(CorruptPersistedState):
            load(path)

    def test_inconsistent_postings(self, index, tmp_path):
        path = tmp_path / "i.npz"
        save(index, path)
        with np.load(path) as archive:
            arrays = dict(archive)
        arrays["doclens"] = arrays["doclens"][:-1]
        np.savez(path, **arrays)
        with pytest.raises(CorruptPersistedState):
            load(path)

    def test_unsupported_object(self, tmp_path):
        with pytest.raises(InvalidParameter):
            save({"not": "persistable"}, tmp_path / "x.npz")
