import pytest

from textsearch import (
    BM25InvertedFile,
    IdfWeighting,
    TfWeighting,
    Tokenizer,
    VectorModel,
)

ANIMALS = ["cat dog", "dog bird", "cat cat bird"]


@pytest.fixture
def corpus():
    return list(ANIMALS)


@pytest.fixture
def tokenizer():
    return Tokenizer()


@pytest.fixture
def model(tokenizer, corpus):
    return VectorModel.from_texts(IdfWeighting(), TfWeighting(), tokenizer, corpus)


@pytest.fixture
def index(model, tokenizer, corpus):
    inv = BM25InvertedFile(model)
    inv.extend(model.vectorize_corpus(tokenizer, corpus))
    return inv
