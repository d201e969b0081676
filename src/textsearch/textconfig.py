"""
Text preprocessing configuration and normalization.

A TextConfig describes the whole preprocessing and tokenization pipeline.
Vocabularies remember the fingerprint of the config they were built with so
that documents tokenized under a different pipeline are rejected instead of
silently polluting the id space.
"""

from __future__ import annotations

import hashlib
import json
import re
import unicodedata
from dataclasses import asdict, dataclass, field
from typing import Any

from textsearch.errors import InvalidParameter

URL_RE = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
USER_RE = re.compile(r"@\w+")
NUM_RE = re.compile(r"\d+(?:[.,]\d+)*")
DUP_RE = re.compile(r"(.)\1+", re.DOTALL)

URL_SYMBOL = "_url"
USER_SYMBOL = "_usr"
NUM_SYMBOL = "_num"
EMO_SYMBOL = "_emo"

_EMOJI_RANGES = (
    (0x1F000, 0x1FAFF),
    (0x2600, 0x27BF),
    (0x2B00, 0x2BFF),
)
_VARIATION_SELECTORS = (0xFE00, 0xFE0F)


@dataclass(frozen=True)
class Skipgram:
    """
    A skip-gram joins `qsize` words separated by `skip` words into one token.

    Args:
        qsize: Number of words in the token.
        skip: Number of words skipped between consecutive words of the token.
    """

    qsize: int
    skip: int

    def __post_init__(self):
        if self.qsize < 1:
            raise InvalidParameter(f"skip-gram qsize must be >= 1, got {self.qsize}")
        if self.skip < 0:
            raise InvalidParameter(f"skip-gram skip must be >= 0, got {self.skip}")


@dataclass(frozen=True)
class TextConfig:
    """
    Preprocessing and tokenization pipeline.

    Args:
        del_diac: Remove diacritic symbols.
        del_dup: Replace runs of the same symbol by a single symbol.
        del_punc: Remove punctuation; otherwise punctuation becomes its own token.
        group_num: Replace numbers by `_num`.
        group_url: Replace URLs by `_url`.
        group_usr: Replace user mentions (@usr) by `_usr`.
        group_emo: Replace emojis by `_emo`.
        lc: Lower-case the text.
        qlist: Character q-gram sizes.
        nlist: Word n-gram sizes.
        slist: Skip-gram definitions (Skipgram or (qsize, skip) pairs).
        collocations: Window size for word collocations (0 disables them).
        mark_token_type: Tag non-unigram tokens with their kind.

    Note: if qlist, nlist and slist are empty and collocations is 0,
    nlist defaults to (1,).
    """

    del_diac: bool = True
    del_dup: bool = False
    del_punc: bool = False
    group_num: bool = True
    group_url: bool = True
    group_usr: bool = False
    group_emo: bool = False
    lc: bool = True
    qlist: tuple[int, ...] = ()
    nlist: tuple[int, ...] = ()
    slist: tuple[Skipgram, ...] = ()
    collocations: int = 0
    mark_token_type: bool = True
    _fingerprint: str = field(default="", init=False, repr=False, compare=False)

    def __post_init__(self):
        qlist = tuple(int(q) for q in self.qlist)
        nlist = tuple(int(n) for n in self.nlist)
        slist = tuple(s if isinstance(s, Skipgram) else Skipgram(*s) for s in self.slist)
        if any(q < 1 for q in qlist):
            raise InvalidParameter(f"q-gram sizes must be >= 1, got {qlist}")
        if any(n < 1 for n in nlist):
            raise InvalidParameter(f"n-gram sizes must be >= 1, got {nlist}")
        if self.collocations < 0:
            raise InvalidParameter(f"collocations window must be >= 0, got {self.collocations}")
        if not qlist and not nlist and not slist and self.collocations == 0:
            nlist = (1,)
        object.__setattr__(self, "qlist", qlist)
        object.__setattr__(self, "nlist", nlist)
        object.__setattr__(self, "slist", slist)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("_fingerprint")
        data["qlist"] = list(self.qlist)
        data["nlist"] = list(self.nlist)
        data["slist"] = [[s.qsize, s.skip] for s in self.slist]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextConfig:
        data = dict(data)
        data["qlist"] = tuple(data.get("qlist", ()))
        data["nlist"] = tuple(data.get("nlist", ()))
        data["slist"] = tuple(Skipgram(*s) for s in data.get("slist", ()))
        return cls(**data)

    def fingerprint(self) -> str:
        """Stable digest of the configuration; equal digests mean compatible tokenizations."""
        if not self._fingerprint:
            payload = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
            object.__setattr__(self, "_fingerprint", hashlib.sha1(payload.encode("utf-8")).hexdigest())
        return self._fingerprint


def is_emoji(char: str) -> bool:
    code = ord(char)
    return any(lo <= code <= hi for lo, hi in _EMOJI_RANGES)


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return unicodedata.normalize(
        "NFC", "".join(c for c in decomposed if not unicodedata.combining(c))
    )


def _is_punctuation(char: str) -> bool:
    if char == "_":
        return False
    category = unicodedata.category(char)
    return category[0] in ("P", "S")


def normalize_text(config: TextConfig, text: str) -> str:
    """
    Normalize text following the transformations enabled in config.

    The result is a single-space separated string where grouped entities
    (`_url`, `_usr`, `_num`, `_emo`) and kept punctuation are standalone words.
    """
    if config.group_url:
        text = URL_RE.sub(f" {URL_SYMBOL} ", text)
    if config.group_usr:
        text = USER_RE.sub(f" {USER_SYMBOL} ", text)
    if config.lc:
        text = text.lower()
    if config.del_diac:
        text = _strip_diacritics(text)
    if config.del_dup:
        text = DUP_RE.sub(r"\1", text)
    if config.group_num:
        text = NUM_RE.sub(f" {NUM_SYMBOL} ", text)

    output: list[str] = []
    for char in text:
        if _VARIATION_SELECTORS[0] <= ord(char) <= _VARIATION_SELECTORS[1]:
            continue
        if is_emoji(char):
            output.append(f" {EMO_SYMBOL} " if config.group_emo else f" {char} ")
        elif _is_punctuation(char):
            output.append(" " if config.del_punc else f" {char} ")
        else:
            output.append(char)

    return " ".join("".join(output).split())


__all__ = [
    "Skipgram",
    "TextConfig",
    "normalize_text",
    "is_emoji",
    "URL_SYMBOL",
    "USER_SYMBOL",
    "NUM_SYMBOL",
    "EMO_SYMBOL",
]
