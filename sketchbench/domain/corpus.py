"""
Corpus loading and tokenization.

The corpus is a plain-text file split on a fixed set of delimiter characters.
Empty and whitespace-only fragments are dropped and every token is lowercased.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

from sketchbench.config import get_settings

CORPUS_DELIMITERS: tuple[str, ...] = (
    " ",
    ",",
    ".",
    ":",
    "\t",
    "\n",
    "—",  # em-dash
    "?",
    '"',
    ";",
    "!",
    "’",  # right single quote
    "\r",
    "'",
    "(",
    ")",
)
RIGHT_DOUBLE_QUOTE = "”"


def _splitter(delimiters: Sequence[str]) -> re.Pattern[str]:
    return re.compile("[" + "".join(re.escape(d) for d in delimiters) + "]")


_DEFAULT_SPLIT = _splitter(CORPUS_DELIMITERS)
_EXTENDED_SPLIT = _splitter(CORPUS_DELIMITERS + (RIGHT_DOUBLE_QUOTE,))


def tokenize(text: str, split_right_double_quote: bool = True) -> List[str]:
    """
    Split `text` into lowercase tokens.

    Parameters
    ----------
    text : str
        Raw corpus text.
    split_right_double_quote : bool
        Also treat the typographic right double quote as a delimiter.
    """
    pattern = _EXTENDED_SPLIT if split_right_double_quote else _DEFAULT_SPLIT
    return [piece.lower() for piece in pattern.split(text) if piece and not piece.isspace()]


def load_corpus(path: Path | str, split_right_double_quote: Optional[bool] = None) -> List[str]:
    """
    Read a UTF-8 text file and tokenize it.

    Raises FileNotFoundError when the file does not exist.
    """
    if split_right_double_quote is None:
        split_right_double_quote = get_settings().corpus_split_right_double_quote
    text = Path(path).read_text(encoding="utf-8")
    return tokenize(text, split_right_double_quote=split_right_double_quote)


__all__ = ["CORPUS_DELIMITERS", "RIGHT_DOUBLE_QUOTE", "tokenize", "load_corpus"]
