"""
loader.py — spreadsheet export → RawGrid

Supports: .csv .tsv .txt .xlsx .xlsm .xls .ods

Public API:
    result = load_grid("path/to/visits.csv")
    grid   = result["grid"]        # list[list[str]], row 0 is the header

Result dict keys:
    grid              — list of rows, every cell a string ("" for blanks)
    detected_format   — "csv", "xlsx", ...
    detected_encoding — encoding name for text files; None for workbooks
    encoding_info     — dict: detected, confidence, is_utf8, suspicious_chars
    delimiter         — delimiter char for text files; None otherwise
    sheet_name        — sheet that was read for workbooks; None otherwise
    sheet_names       — all sheet names for workbooks; None otherwise
    original_rows     — row count including the header row
    original_columns  — column count
    warnings          — list of warning strings
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from pathlib import Path
from typing import Optional

import chardet
import pandas as pd

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ODS_FORMATS   = {".ods"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | ODS_FORMATS


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding_info(raw: bytes) -> dict:
    """Detect encoding from raw bytes; Big5 exports from older Excel are common."""
    result     = chardet.detect(raw)
    detected   = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)

    is_utf8 = detected.upper().replace("-", "") in ("UTF8", "UTF8SIG", "ASCII")

    suspicious: list[str] = []
    if not is_utf8:
        for row_idx, line in enumerate(raw.split(b"\n")[:100], start=1):
            try:
                line.decode("utf-8")
            except UnicodeDecodeError as e:
                bad_byte = line[e.start : e.end]
                suspicious.append(f"row {row_idx}: byte {bad_byte!r} at position {e.start}")

    return {
        "detected":         detected,
        "confidence":       confidence,
        "is_utf8":          is_utf8,
        "suspicious_chars": suspicious[:10],
    }


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line: UTF-8, then the detected encoding, then Big5, then
    CP1252 with replacement so decoding never fails. Strips the BOM and
    embedded null bytes.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "big5"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    csv.Sniffer first; otherwise score each candidate by column-count
    consistency and width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            continue
        width_counts = Counter(len(row) for row in rows)
        mode_width, mode_count = width_counts.most_common(1)[0]
        score = (mode_width * 2.0) + (mode_count / len(rows)) * mode_width
        if len(rows[0]) == mode_width:
            score += 1.0
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# GRID CONVERSION
# ══════════════════════════════════════════════════════════════════════════════

def dataframe_to_grid(df: pd.DataFrame) -> list[list[str]]:
    """Turn a header-less frame into a grid of strings with trailing blank rows dropped."""
    grid = [["" if pd.isna(value) else str(value) for value in row] for row in df.itertuples(index=False, name=None)]
    while grid and not any(cell.strip() for cell in grid[-1]):
        grid.pop()
    return grid


def _result(grid: list[list[str]], **meta) -> dict:
    result = {
        "grid":              grid,
        "detected_format":   None,
        "detected_encoding": None,
        "encoding_info":     None,
        "delimiter":         None,
        "sheet_name":        None,
        "sheet_names":       None,
        "original_rows":     len(grid),
        "original_columns":  len(grid[0]) if grid else 0,
        "warnings":          [],
    }
    result.update(meta)
    return result


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _load_text(path: Path, suffix: str) -> dict:
    raw      = path.read_bytes()
    enc_info = _detect_encoding_info(raw)
    enc      = enc_info["detected"] if enc_info["detected"] != "unknown" else "utf-8"
    text     = _read_text_safely(raw, enc)

    if not text.strip():
        raise ValueError(f"{path.name} is empty")

    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    sep = r"\|" if delimiter == "|" else delimiter
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines="skip",
            sep=sep,
            engine="python",
        )
    except Exception as exc:
        raise ValueError(f"Could not parse {suffix} file: {exc}") from exc

    return _result(
        dataframe_to_grid(df),
        detected_format=suffix.lstrip("."),
        detected_encoding=enc,
        encoding_info=enc_info,
        delimiter=delimiter,
    )


def _require_reader(suffix: str) -> Optional[str]:
    """Return the pandas engine for a workbook suffix, checking optional readers."""
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd — run: pip install xlrd")
        return "xlrd"
    if suffix == ".ods":
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy — run: pip install odfpy")
        return "odf"
    return "openpyxl"


def _load_workbook(path: Path, suffix: str, sheet_name: Optional[str] = None) -> dict:
    """
    Load one sheet of a workbook.

    Without sheet_name the first sheet is used; a warning names the sheets
    that were ignored.
    """
    engine = _require_reader(suffix)
    warnings: list[str] = []

    try:
        with pd.ExcelFile(path, engine=engine) as xf:
            all_sheets = list(xf.sheet_names)
    except Exception as exc:
        raise ValueError(f"Could not read workbook: {exc}") from exc

    if not all_sheets:
        raise ValueError("Workbook has no sheets.")

    if sheet_name is not None:
        if sheet_name not in all_sheets:
            raise ValueError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
        chosen = sheet_name
    else:
        chosen = all_sheets[0]
        if len(all_sheets) > 1:
            warnings.append(
                f"Multiple sheets found ({len(all_sheets)} total); used '{chosen}'. "
                f"Ignored: {all_sheets[1:]}"
            )

    try:
        df = pd.read_excel(path, sheet_name=chosen, header=None, dtype=str, engine=engine)
    except Exception as exc:
        raise ValueError(f"Could not load sheet '{chosen}': {exc}") from exc

    return _result(
        dataframe_to_grid(df),
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_grid(path: "str | Path", sheet_name: Optional[str] = None) -> dict:
    """
    Load a supported file into a RawGrid.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the format is unsupported or unreadable.
        ImportError        if an optional reader (xlrd, odfpy) is missing.
    """
    path   = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

    if suffix in TEXT_FORMATS:
        return _load_text(path, suffix)
    return _load_workbook(path, suffix, sheet_name)
