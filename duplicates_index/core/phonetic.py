"""Phonetic bucket keys for fuzzy duplicate detection."""

from __future__ import annotations

import re
import unicodedata
from typing import Callable, Dict, Mapping, Optional

from phonetics import metaphone, soundex

from ..config.models import FieldOptions

# Fuzzy passes run in this order
SUPPORTED_ALGORITHMS = ("metaphone", "soundex")

_ENCODERS: Dict[str, Callable[[str], str]] = {
    "metaphone": lambda letters: metaphone(letters.lower()),
    "soundex": lambda letters: soundex(letters.lower()),
}

_NON_LETTER_RE = re.compile(r"[^A-Za-z]+")


def _letters_only(value: str) -> str:
    folded = unicodedata.normalize("NFKD", value)
    without_marks = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return _NON_LETTER_RE.sub("", without_marks)


def encode(algorithm: str, value: str) -> str:
    """Phonetic code of ``value``; empty when it has no latin letters."""
    try:
        encoder = _ENCODERS[algorithm]
    except KeyError:
        raise ValueError(f"Unsupported phonetic algorithm: {algorithm}") from None
    letters = _letters_only(value or "")
    if not letters:
        return ""
    return encoder(letters)


def phonetic_hash(
    values: Mapping[str, str],
    field_options: Mapping[str, FieldOptions],
    algorithm: str,
) -> Optional[str]:
    """Concatenate the codes of the fields opted into ``algorithm``.

    Returns None when no field of the combination opts in (or none of them
    yields a code), so the fingerprint never joins a bucket for it.
    """
    parts = [
        encode(algorithm, values[field])
        for field, options in field_options.items()
        if options.uses_algorithm(algorithm)
    ]
    joined = "".join(parts)
    return joined or None
