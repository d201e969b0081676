"""
Labelled text corpora from the Hugging Face hub (or local files) for fitting
entropy-weighted models and building indexes.
"""

from __future__ import annotations

import logging
from typing import Any

from datasets import Dataset, load_dataset

from textsearch.errors import InvalidParameter

logger = logging.getLogger(__name__)


def corpus_from_dataset(
    dataset: Dataset,
    text_field: str = "text",
    label_field: str | None = "label",
    max_docs: int | None = None,
) -> tuple[list[str], list[Any] | None]:
    """
    Extract texts (and labels) from a datasets.Dataset.

    Args:
        dataset: Dataset with one document per row.
        text_field: Column holding the text. Multiple columns can be joined
            by passing them separated by "+" (e.g. "title+text").
        label_field: Column holding the class label, or None for unlabelled
            corpora.
        max_docs: Keep only the first max_docs rows.

    Returns:
        (texts, labels); labels is None when label_field is None.
    """
    if max_docs is not None and len(dataset) > max_docs:
        dataset = dataset.select(range(max_docs))

    fields = text_field.split("+")
    missing = [f for f in [*fields, label_field] if f is not None and f not in dataset.column_names]
    if missing:
        raise InvalidParameter(f"dataset has no column(s) {missing}; available: {dataset.column_names}")

    texts = [" ".join(str(row[f] or "") for f in fields) for row in dataset]
    labels = list(dataset[label_field]) if label_field is not None else None
    return texts, labels


def load_labelled_corpus(
    path: str,
    name: str | None = None,
    split: str = "train",
    text_field: str = "text",
    label_field: str | None = "label",
    max_docs: int | None = None,
    **kwargs,
) -> tuple[list[str], list[Any] | None]:
    """
    Load a corpus with datasets.load_dataset and return its texts and labels.

    Example:
        texts, labels = load_labelled_corpus("ag_news", split="test", max_docs=2000)
    """
    dataset = load_dataset(path, name, split=split, **kwargs)
    texts, labels = corpus_from_dataset(dataset, text_field, label_field, max_docs)
    logger.debug("Loaded %d documents from %s (split %s)", len(texts), path, split)
    return texts, labels


__all__ = ["corpus_from_dataset", "load_labelled_corpus"]
