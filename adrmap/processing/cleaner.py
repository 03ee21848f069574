"""Key normalization and table cleaning utilities shared by every loader."""

from __future__ import annotations

import io
import logging
import re
import unicodedata

import pandas as pd

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[._]")
_NOT_KEY_CHARS = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_key(text: object) -> str:
    """Turn an arbitrary label into a canonical comparison key.

    Lower-cases, strips diacritics, turns periods and underscores into spaces,
    drops anything outside ``[a-z0-9\\s]`` and collapses whitespace.
    ``None``/NaN give ``""``.
    """
    if text is None or (isinstance(text, float) and text != text):
        return ""
    s = unicodedata.normalize("NFKD", str(text).lower())
    s = s.encode("ascii", "ignore").decode("ascii")
    s = _SEPARATORS.sub(" ", s)
    s = _NOT_KEY_CHARS.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


def strip_strings(df: pd.DataFrame) -> pd.DataFrame:
    """Strip leading/trailing whitespace from string columns."""
    df = df.copy()
    str_cols = df.select_dtypes(include=["object", "string"]).columns
    for col in str_cols:
        df[col] = df[col].str.strip()
    return df


def drop_incomplete(df: pd.DataFrame, required: list[str]) -> pd.DataFrame:
    """Drop rows where any of *required* is missing or blank."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing required columns: {missing}. Available: {list(df.columns)}")

    mask = pd.Series(True, index=df.index)
    for col in required:
        mask &= df[col].fillna("").astype(str).str.strip() != ""
    removed = int((~mask).sum())
    if removed:
        logger.info("Dropped %d rows with empty %s", removed, ", ".join(required))
    return df[mask]


def parse_decimal(value: object) -> float:
    """Parse a number that may use a comma as decimal separator.

    ``"1.234,5"`` and ``"1234,5"`` both give ``1234.5``; anything unparsable
    gives ``0.0``.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if value != value else float(value)
    s = str(value).strip().replace(" ", "")
    if "," in s:
        if "." in s and s.rfind(".") > s.rfind(","):
            s = s.replace(",", "")
        else:
            s = s.replace(".", "").replace(",", ".")
    try:
        return float(s)
    except ValueError:
        return 0.0


def parse_decimal_series(s: pd.Series) -> pd.Series:
    """Vectorised :func:`parse_decimal`."""
    return s.map(parse_decimal).astype(float)


def read_table(raw: str | bytes, required: list[str]) -> pd.DataFrame:
    """Parse comma-delimited text with a header row into a cleaned DataFrame.

    Every cell is read as text; blank lines are skipped and rows with an
    empty required field are dropped.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8-sig")
    elif raw.startswith("\ufeff"):
        raw = raw[1:]
    if not raw.strip():
        return pd.DataFrame(columns=required)

    df = pd.read_csv(
        io.StringIO(raw),
        sep=",",
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    df.columns = [str(col).strip() for col in df.columns]
    df = strip_strings(df)
    df = drop_incomplete(df, required)
    logger.info("Parsed table: %d rows x %d cols", len(df), len(df.columns))
    return df.reset_index(drop=True)
