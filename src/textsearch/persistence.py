"""
Save and load vector models and inverted files.

Objects are stored in a compressed numpy archive (.npz). Every array of an
object is keyed `<group>/<name>`, so several objects can share one file
under different groups; the root group "/" uses bare names. Saving into an
existing archive rewrites the target group and keeps the others.

Stored per group:
    format_version  archive layout version
    kind            "VectorModel" or "BM25InvertedFile"
    meta            JSON: text config, weighting schemes, mindocs, BM25
                    parameters, corpus size
    voc_tokens, voc_ndocs, voc_freq, weights   (when a model is present)
    doclens, indptr, indices, data, shape      (inverted files)

Filesystem problems raise IOFailure; malformed archives raise
CorruptPersistedState.
"""

from __future__ import annotations

import json
import logging
import os
import zipfile
import zlib
from pathlib import Path
from typing import Any, Union

import numpy as np
from scipy.sparse import csr_matrix

from textsearch.errors import CorruptPersistedState, IOFailure, InvalidParameter, TextSearchError
from textsearch.invindex import BM25InvertedFile, BM25Parameters
from textsearch.model import VectorModel
from textsearch.textconfig import TextConfig
from textsearch.vocabulary import Vocabulary
from textsearch.weighting import (
    global_weighting_from_dict,
    local_weighting_from_dict,
    weighting_to_dict,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

KIND_MODEL = "VectorModel"
KIND_INDEX = "BM25InvertedFile"

PathLike = Union[str, os.PathLike]

# Errors raised by np.load / NpzFile on malformed content
_ARCHIVE_ERRORS = (zipfile.BadZipFile, zlib.error, ValueError, EOFError, KeyError)


# =============================================================================
# Groups
# =============================================================================


def _group_prefix(parent_group: str) -> str:
    parts = parent_group.strip("/").split("/") if parent_group.strip("/") else []
    if any(not part for part in parts):
        raise InvalidParameter(f"invalid group name {parent_group!r}")
    return "".join(f"{part}/" for part in parts)


def _in_group(key: str, prefix: str) -> bool:
    return key.startswith(prefix) and "/" not in key[len(prefix) :]


# =============================================================================
# Archive I/O
# =============================================================================


def _read_archive(path: Path) -> dict[str, np.ndarray]:
    """All arrays of an archive, loaded eagerly; the file is closed on return."""
    try:
        archive = np.load(path, allow_pickle=False)
        if not isinstance(archive, np.lib.npyio.NpzFile):
            raise CorruptPersistedState(f"{path} is not an .npz archive")
        with archive:
            return {key: archive[key] for key in archive.files}
    except CorruptPersistedState:
        raise
    except OSError as e:
        raise IOFailure(f"cannot read {path}: {e}") from e
    except _ARCHIVE_ERRORS as e:
        raise CorruptPersistedState(f"malformed archive {path}: {e}") from e


def _write_archive(path: Path, arrays: dict[str, np.ndarray]) -> None:
    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "wb") as fh:
            np.savez_compressed(fh, **arrays)
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise IOFailure(f"cannot write {path}: {e}") from e


# =============================================================================
# Encoding
# =============================================================================


def _encode_model(model: VectorModel, meta: dict[str, Any]) -> dict[str, np.ndarray]:
    voc = model.vocabulary
    meta.update(
        {
            "config": voc.config.to_dict() if voc.config is not None else None,
            "corpus_size": voc.corpus_size,
            "global_weighting": weighting_to_dict(model.global_weighting),
            "local_weighting": weighting_to_dict(model.local_weighting),
            "mindocs": model.mindocs,
        }
    )
    return {
        "voc_tokens": np.array(voc.tokens, dtype=np.str_),
        "voc_ndocs": voc.ndocs_array,
        "voc_freq": voc.freq_array,
        "weights": np.asarray(model.weights, dtype=np.float64),
    }


def _encode(obj: VectorModel | BM25InvertedFile) -> dict[str, np.ndarray]:
    meta: dict[str, Any] = {}
    if isinstance(obj, VectorModel):
        kind = KIND_MODEL
        arrays = _encode_model(obj, meta)
    elif isinstance(obj, BM25InvertedFile):
        kind = KIND_INDEX
        arrays = _encode_model(obj.model, meta) if obj.model is not None else {}
        meta["has_model"] = obj.model is not None
        meta["bm25"] = {"k1": obj.params.k1, "b": obj.params.b, "epsilon": obj.params.epsilon}
        matrix = obj.to_sparse_matrix()
        arrays.update(
            {
                "doclens": obj.doc_lengths,
                "indptr": np.asarray(matrix.indptr, dtype=np.int64),
                "indices": np.asarray(matrix.indices, dtype=np.int64),
                "data": np.asarray(matrix.data, dtype=np.float32),
                "shape": np.asarray(matrix.shape, dtype=np.int64),
            }
        )
    else:
        raise InvalidParameter(f"cannot persist object of type {type(obj).__name__}")

    arrays["format_version"] = np.array(FORMAT_VERSION, dtype=np.int64)
    arrays["kind"] = np.array(kind)
    arrays["meta"] = np.array(json.dumps(meta, sort_keys=True))
    return arrays


# =============================================================================
# Decoding
# =============================================================================


def _decode_model(arrays: dict[str, np.ndarray], meta: dict[str, Any]) -> VectorModel:
    config = TextConfig.from_dict(meta["config"]) if meta["config"] is not None else None
    tokens = arrays["voc_tokens"].tolist()
    ndocs = arrays["voc_ndocs"].tolist()
    freq = arrays["voc_freq"].tolist()
    if not len(tokens) == len(ndocs) == len(freq):
        raise CorruptPersistedState("vocabulary arrays differ in length")

    voc = Vocabulary(config)
    for token, nd, fr in zip(tokens, ndocs, freq):
        voc.push(token, nd, fr)
    if len(voc) != len(tokens):
        raise CorruptPersistedState("vocabulary contains duplicate tokens")
    voc.corpus_size = int(meta["corpus_size"])

    return VectorModel(
        global_weighting_from_dict(meta["global_weighting"]),
        local_weighting_from_dict(meta["local_weighting"]),
        voc,
        arrays["weights"],
        int(meta["mindocs"]),
    )


def _decode_index(
    arrays: dict[str, np.ndarray], meta: dict[str, Any], staticgraph: bool
) -> BM25InvertedFile:
    model = _decode_model(arrays, meta) if meta["has_model"] else None
    params = BM25Parameters(**meta["bm25"])

    doclens = arrays["doclens"].astype(np.float64)
    indptr = arrays["indptr"].astype(np.int64)
    indices = arrays["indices"].astype(np.int64)
    data = arrays["data"].astype(np.float32)
    n_rows, n_docs = (int(x) for x in arrays["shape"])
    if n_docs != len(doclens) or len(indptr) != n_rows + 1:
        raise CorruptPersistedState("postings shape does not match document lengths")
    if indptr[0] != 0 or indptr[-1] != len(indices) or len(indices) != len(data):
        raise CorruptPersistedState("inconsistent postings arrays")
    if np.any(np.diff(indptr) < 0):
        raise CorruptPersistedState("inconsistent postings arrays")
    if len(indices) and (indices.min() < 0 or indices.max() >= n_docs):
        raise CorruptPersistedState("postings reference unknown documents")

    matrix = csr_matrix((data, indices.astype(np.int32), indptr), shape=(n_rows, n_docs))
    return BM25InvertedFile.from_sparse_matrix(matrix, doclens, model, params, frozen=staticgraph)


def _decode(arrays: dict[str, np.ndarray], staticgraph: bool) -> VectorModel | BM25InvertedFile:
    version = int(arrays["format_version"])
    if version != FORMAT_VERSION:
        raise CorruptPersistedState(f"unsupported format version {version}")
    kind = str(arrays["kind"])
    meta = json.loads(str(arrays["meta"]))
    if kind == KIND_MODEL:
        return _decode_model(arrays, meta)
    if kind == KIND_INDEX:
        return _decode_index(arrays, meta, staticgraph)
    raise CorruptPersistedState(f"unknown object kind {kind!r}")


# =============================================================================
# Public API
# =============================================================================


def save(obj: VectorModel | BM25InvertedFile, path: PathLike, parent_group: str = "/") -> None:
    """
    Save a VectorModel or BM25InvertedFile under parent_group of an archive.

    Args:
        obj: Object to store.
        path: Archive file; created if missing.
        parent_group: Group to store the object under ("/" for the root).
    """
    path = Path(path)
    prefix = _group_prefix(parent_group)
    arrays = {f"{prefix}{name}": value for name, value in _encode(obj).items()}

    if path.exists():
        existing = _read_archive(path)
        arrays.update({k: v for k, v in existing.items() if not _in_group(k, prefix)})

    _write_archive(path, arrays)
    logger.debug("Saved %s to %s (group %r)", type(obj).__name__, path, parent_group)


def load(
    path: PathLike, parent_group: str = "/", staticgraph: bool = False
) -> VectorModel | BM25InvertedFile:
    """
    Load the object stored under parent_group.

    Args:
        path: Archive file.
        parent_group: Group the object was saved under.
        staticgraph: Load inverted files frozen (read-only CSR postings).

    Raises:
        IOFailure: The file cannot be read.
        CorruptPersistedState: The archive or group is malformed.
    """
    path = Path(path)
    prefix = _group_prefix(parent_group)
    arrays = {
        key[len(prefix) :]: value
        for key, value in _read_archive(path).items()
        if _in_group(key, prefix)
    }
    if not arrays:
        raise CorruptPersistedState(f"no object stored under group {parent_group!r} in {path}")

    try:
        obj = _decode(arrays, staticgraph)
    except CorruptPersistedState:
        raise
    except (KeyError, TypeError, ValueError, TextSearchError) as e:
        raise CorruptPersistedState(f"malformed group {parent_group!r} in {path}: {e}") from e

    logger.debug("Loaded %s from %s (group %r)", type(obj).__name__, path, parent_group)
    return obj


def load_model(path: PathLike, parent_group: str = "/") -> VectorModel:
    obj = load(path, parent_group)
    if not isinstance(obj, VectorModel):
        raise CorruptPersistedState(f"group {parent_group!r} holds a {type(obj).__name__}")
    return obj


def load_index(path: PathLike, parent_group: str = "/", staticgraph: bool = False) -> BM25InvertedFile:
    obj = load(path, parent_group, staticgraph)
    if not isinstance(obj, BM25InvertedFile):
        raise CorruptPersistedState(f"group {parent_group!r} holds a {type(obj).__name__}")
    return obj


__all__ = ["FORMAT_VERSION", "save", "load", "load_model", "load_index"]
