"""Built-in data transformers applied before values are indexed."""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Any

_MULTI_SPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^0-9a-z]+")
_ZIP_RE = re.compile(r"[^0-9A-Z]+")

_STREET_SUFFIXES = [
    (re.compile(r"(stra(ss|ß)e|str\.?)(?=\s|\d|$)"), "str"),
    (re.compile(r"\bstreet\b"), "st"),
    (re.compile(r"\bst\."), "st"),
    (re.compile(r"\bavenue\b"), "ave"),
    (re.compile(r"\bave\."), "ave"),
    (re.compile(r"\broad\b"), "rd"),
    (re.compile(r"\brd\."), "rd"),
    (re.compile(r"\bgasse\b"), "g"),
    (re.compile(r"\bplatz\b"), "pl"),
]

_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%Y/%m/%d", "%Y%m%d")


def _standard(value: Any) -> str:
    if value is None:
        return ""
    return _MULTI_SPACE_RE.sub(" ", str(value)).strip().lower()


class StandardTransformer:
    """Trim, collapse whitespace and lowercase."""

    def transform(self, value: Any) -> str:
        return _standard(value)


class SimplifyTransformer:
    """Standard normalization plus accent folding and punctuation removal."""

    def transform(self, value: Any) -> str:
        text = _standard(value).replace("ß", "ss")
        folded = unicodedata.normalize("NFKD", text)
        without_marks = "".join(ch for ch in folded if not unicodedata.combining(ch))
        return _MULTI_SPACE_RE.sub(" ", _NON_ALNUM_RE.sub(" ", without_marks)).strip()


class ZipTransformer:
    """Uppercase alphanumerics only (``"ab1 2cd"`` -> ``"AB12CD"``)."""

    def transform(self, value: Any) -> str:
        if value is None:
            return ""
        return _ZIP_RE.sub("", str(value).upper())


class StreetTransformer:
    """Standard normalization with common street suffixes abbreviated."""

    def transform(self, value: Any) -> str:
        text = _standard(value)
        for pattern, replacement in _STREET_SUFFIXES:
            text = pattern.sub(replacement, text)
        return _MULTI_SPACE_RE.sub(" ", text).strip()


class BirthDateTransformer:
    """ISO ``YYYY-MM-DD`` from dates, datetimes, unix timestamps or date strings.

    Values that cannot be parsed fall back to the standard normalization so
    they still index (and still match exactly).
    """

    def transform(self, value: Any) -> str:
        if value is None or value == "":
            return ""
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value, tz=timezone.utc).date().isoformat()

        text = _standard(value)
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date().isoformat()
            except ValueError:
                continue
        return text


BUILTIN_TRANSFORMERS = {
    "standard": StandardTransformer,
    "simplify": SimplifyTransformer,
    "zip": ZipTransformer,
    "street": StreetTransformer,
    "birth_date": BirthDateTransformer,
}

DEFAULT_TRANSFORMER = "standard"
