import io
import logging
import re

import pandas as pd

from errors import ValidationError

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


def _read_table(data, filename):
    if filename and filename.lower().endswith(EXCEL_SUFFIXES):
        return pd.read_excel(io.BytesIO(data), dtype=str, keep_default_na=False)

    # First line is the header; rows wider than it are cut back to the name column
    return pd.read_csv(
        io.BytesIO(data),
        dtype=str,
        keep_default_na=False,
        encoding="utf-8-sig",
        engine="python",
        on_bad_lines=lambda fields: fields[:1],
    )


def extract_names(data, filename=None):
    """
    Return the trimmed, non-blank values of the first column, in row order.

    The first row is a header whatever its label and is never a name.

    Duplicates are kept. Raises ValidationError when the file is missing,
    unreadable, or holds no usable name.
    """
    if data is None:
        raise ValidationError("Missing template image or CSV file.")

    try:
        df = _read_table(data, filename)
    except pd.errors.EmptyDataError:
        df = pd.DataFrame()
    except Exception as exc:
        logger.warning(f"Could not parse name list {filename!r}: {exc}")
        raise ValidationError("Failed to parse CSV file.") from exc

    names = []
    if len(df.columns):
        for value in df.iloc[:, 0]:
            if pd.isna(value):
                continue
            name = str(value).strip()
            if name:
                names.append(name)

    if not names:
        raise ValidationError("CSV file contains no usable names.")

    logger.info(f"Extracted {len(names)} names from {filename or 'name list'}")
    return names


def sanitize_entry_name(name):
    """Replace every character outside [A-Za-z0-9] with an underscore."""
    return _UNSAFE_CHARS.sub("_", name)
