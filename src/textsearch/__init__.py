"""
textsearch: sparse text vectorization and BM25 inverted-file search.

    from textsearch import BM25InvertedFile, IdfWeighting, TfWeighting, Tokenizer, VectorModel

    tok = Tokenizer()
    model = VectorModel.from_texts(IdfWeighting(), TfWeighting(), tok, corpus)
    index = BM25InvertedFile(model)
    index.extend(model.vectorize_corpus(tok, corpus))
    index.search("a query", k=10)

The optional `textsearch.datasets` module (Hugging Face corpora) is not
imported here.
"""

import logging

from textsearch.errors import (
    CorruptPersistedState,
    IncompatibleConfig,
    InvalidParameter,
    IOFailure,
    TextSearchError,
)
from textsearch.invindex import BM25InvertedFile, BM25Parameters, SearchResult, search
from textsearch.model import VectorModel
from textsearch.persistence import load, load_index, load_model, save
from textsearch.textconfig import Skipgram, TextConfig, normalize_text
from textsearch.tokenizer import Tokenizer, tokenize, tokenize_corpus
from textsearch.vocabulary import Vocabulary, VocabularyEntry
from textsearch.weighting import (
    BinaryGlobalWeighting,
    BinaryLocalWeighting,
    EntropyWeighting,
    FreqWeighting,
    IdfWeighting,
    TfWeighting,
    TpWeighting,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "BM25InvertedFile",
    "BM25Parameters",
    "SearchResult",
    "search",
    "VectorModel",
    "Vocabulary",
    "VocabularyEntry",
    "TextConfig",
    "Skipgram",
    "normalize_text",
    "Tokenizer",
    "tokenize",
    "tokenize_corpus",
    "BinaryGlobalWeighting",
    "IdfWeighting",
    "EntropyWeighting",
    "BinaryLocalWeighting",
    "TfWeighting",
    "FreqWeighting",
    "TpWeighting",
    "save",
    "load",
    "load_model",
    "load_index",
    "TextSearchError",
    "IncompatibleConfig",
    "InvalidParameter",
    "CorruptPersistedState",
    "IOFailure",
]
