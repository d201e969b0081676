import pytest

datasets = pytest.importorskip("datasets")

from textsearch import IdfWeighting, InvalidParameter, TfWeighting, Tokenizer, VectorModel  # noqa: E402
from textsearch.datasets import corpus_from_dataset  # noqa: E402


@pytest.fixture
def dataset():
    return datasets.Dataset.from_dict(
        {
            "title": ["Cats", "Dogs", "Birds"],
            "text": ["cat dog", "dog bird", "cat cat bird"],
            "label": [0, 1, 0],
        }
    )


def test_texts_and_labels(dataset):
    texts, labels = corpus_from_dataset(dataset)
    assert texts == ["cat dog", "dog bird", "cat cat bird"]
    assert labels == [0, 1, 0]


def test_joined_fields(dataset):
    texts, labels = corpus_from_dataset(dataset, text_field="title+text", label_field=None, max_docs=2)
    assert texts == ["Cats cat dog", "Dogs dog bird"]
    assert labels is None


def test_missing_column(dataset):
    with pytest.raises(InvalidParameter):
        corpus_from_dataset(dataset, text_field="body")


def test_builds_a_model(dataset):
    texts, _ = corpus_from_dataset(dataset)
    model = VectorModel.from_texts(IdfWeighting(), TfWeighting(), Tokenizer(), texts)
    assert model.vocabulary.tokens == ["cat", "dog", "bird"]
