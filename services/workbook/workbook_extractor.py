"""
Cash-Up Engine - Workbook Extractor
===================================
Turns a transaction-report spreadsheet into income/expense totals.

The reports have no fixed schema: the header row can sit anywhere near the
top and columns come in any order, so the header is located by content.
In standalone mode the free-text banner lines above the table are also
scanned for the employee name and the reporting window.

Pure function of the input bytes: the same workbook always yields the same
result.
"""

import io
import logging
import math
import numbers
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd

from core.constants import (
    HEADER_AMOUNT,
    HEADER_EFFECTIVE_DATE,
    HEADER_SCAN_ROWS,
    HEADER_TRANSACTION_TYPE,
    METADATA_SCAN_ROWS,
    TXN_EXPENSE,
    TXN_INCOME,
)
from core.errors import HeaderNotFound, NoWorksheet, UnreadableWorkbook
from domain.enums import ExtractionMode

logger = logging.getLogger("cashup.workbook")

_DATE_RE = re.compile(r"(\d{4})[/-](\d{2})[/-](\d{2})")
_DATE_TOKEN = r"\d{4}[/-]\d{2}[/-]\d{2}(?:[ T]\d{2}:\d{2}(?::\d{2})?)?"
_REPORT_NAME_RE = re.compile(
    rf"TRANSACTION REPORT\s+FOR\s+(.+?)(?:\s+FROM\s+{_DATE_TOKEN}\s+TO\s+{_DATE_TOKEN}.*)?$",
    re.IGNORECASE,
)
_REPORT_RANGE_RE = re.compile(rf"FROM\s+({_DATE_TOKEN})\s+TO\s+({_DATE_TOKEN})", re.IGNORECASE)
_HEADER_NOISE_RE = re.compile(r"[\W_]+")
_AMOUNT_NOISE_RE = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class WorkbookTotals:
    income_total: float
    expense_total: float
    net_total: float
    sheet_name: str
    rows_parsed: int
    first_date_key: str | None = None


@dataclass(frozen=True)
class ReportMetadata:
    employee_name_from_report: str | None
    report_from_date_key: str | None
    report_to_date_key: str | None

    @property
    def date_key(self) -> str | None:
        return self.report_from_date_key or self.report_to_date_key


@dataclass(frozen=True)
class ExtractedWorkbook:
    """Extraction result tagged with the mode that produced it"""

    mode: ExtractionMode
    totals: WorkbookTotals
    metadata: ReportMetadata | None = None


# =============================================================================
# Cell helpers
# =============================================================================


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def cell_text(value: Any) -> str:
    """Cell as stripped text; blank cells become ''."""
    if _is_blank(value):
        return ""
    return str(value).strip()


def normalize_header(value: Any) -> str:
    """'Transaction Type', 'TRANSACTION_TYPE', 'transaction-type' -> 'transactiontype'"""
    return _HEADER_NOISE_RE.sub("", cell_text(value).lower())


def to_number(value: Any) -> float | None:
    """Coerce an amount cell; None when it is not a finite number."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        cleaned = _AMOUNT_NOISE_RE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def date_key_from(value: Any) -> str | None:
    """YYYY-MM-DD from a date cell or from text holding YYYY-MM-DD / YYYY/MM/DD."""
    if _is_blank(value):
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    match = _DATE_RE.search(str(value))
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}-{match.group(3)}"


# =============================================================================
# Scanning
# =============================================================================


def _read_first_sheet(data: bytes) -> tuple[str, list[list[Any]]]:
    try:
        with pd.ExcelFile(io.BytesIO(data)) as workbook:
            if not workbook.sheet_names:
                raise NoWorksheet()
            sheet_name = str(workbook.sheet_names[0])
            frame = pd.read_excel(workbook, sheet_name=sheet_name, header=None, dtype=object)
    except NoWorksheet:
        raise
    except Exception as e:
        raise UnreadableWorkbook(str(e)) from e

    return sheet_name, frame.values.tolist()


def find_header_row(rows: list[list[Any]], max_rows: int = HEADER_SCAN_ROWS) -> tuple[int, dict[str, int]]:
    """
    Locate the header row.

    Returns:
        (row index, {"type": col, "amount": col, "date": col or -1})

    Raises:
        HeaderNotFound: no row in the first max_rows has both headers
    """
    seen_type = seen_amount = False
    for idx, row in enumerate(rows[:max_rows]):
        headers = [normalize_header(c) for c in row]
        has_type = HEADER_TRANSACTION_TYPE in headers
        has_amount = HEADER_AMOUNT in headers
        seen_type = seen_type or has_type
        seen_amount = seen_amount or has_amount
        if has_type and has_amount:
            date_col = next((i for i, h in enumerate(headers) if h in HEADER_EFFECTIVE_DATE), -1)
            return idx, {
                "type": headers.index(HEADER_TRANSACTION_TYPE),
                "amount": headers.index(HEADER_AMOUNT),
                "date": date_col,
            }

    missing = []
    if not seen_type:
        missing.append("TransactionType")
    if not seen_amount:
        missing.append("Amount")
    # Both present, never on the same row
    if not missing:
        missing = ["TransactionType", "Amount"]
    raise HeaderNotFound(missing, scanned_rows=min(len(rows), max_rows))


def _cell(row: list[Any], col: int) -> Any:
    return row[col] if 0 <= col < len(row) else None


def sum_transactions(rows: list[list[Any]], header_idx: int, columns: dict[str, int], sheet_name: str) -> WorkbookTotals:
    income_total = 0.0
    expense_total = 0.0
    rows_parsed = 0
    first_date_key = None

    for row in rows[header_idx + 1 :]:
        txn_type = cell_text(_cell(row, columns["type"])).upper()
        amount = to_number(_cell(row, columns["amount"]))
        if not txn_type or amount is None:
            continue

        if txn_type == TXN_INCOME:
            income_total += abs(amount)
        elif txn_type == TXN_EXPENSE:
            expense_total += abs(amount)
        else:
            continue

        rows_parsed += 1
        if first_date_key is None and columns["date"] != -1:
            first_date_key = date_key_from(_cell(row, columns["date"]))

    return WorkbookTotals(
        income_total=income_total,
        expense_total=expense_total,
        net_total=income_total - expense_total,
        sheet_name=sheet_name,
        rows_parsed=rows_parsed,
        first_date_key=first_date_key,
    )


def scan_report_metadata(rows: list[list[Any]], max_rows: int = METADATA_SCAN_ROWS) -> ReportMetadata:
    """Find 'TRANSACTION REPORT FOR <name>' and 'FROM <date> TO <date>' banner lines."""
    employee_name = None
    from_key = None
    to_key = None

    for row in rows[:max_rows]:
        line = " ".join(t for t in (cell_text(c) for c in row) if t)
        if not line:
            continue

        if employee_name is None:
            name_match = _REPORT_NAME_RE.search(line)
            if name_match and name_match.group(1).strip():
                employee_name = name_match.group(1).strip()

        if from_key is None:
            range_match = _REPORT_RANGE_RE.search(line)
            if range_match:
                from_key = date_key_from(range_match.group(1))
                to_key = date_key_from(range_match.group(2))

        if employee_name and from_key:
            break

    return ReportMetadata(employee_name, from_key, to_key)


# =============================================================================
# Entry point
# =============================================================================


def extract_workbook(
    data: bytes,
    mode: ExtractionMode = ExtractionMode.LINKED,
    header_scan_rows: int = HEADER_SCAN_ROWS,
    metadata_scan_rows: int = METADATA_SCAN_ROWS,
) -> ExtractedWorkbook:
    """
    Parse a spreadsheet into totals (and, in standalone mode, metadata).

    Raises:
        UnreadableWorkbook: bytes are not a spreadsheet
        NoWorksheet: workbook has no sheets
        HeaderNotFound: no TransactionType/Amount header row
    """
    sheet_name, rows = _read_first_sheet(data)
    header_idx, columns = find_header_row(rows, header_scan_rows)
    totals = sum_transactions(rows, header_idx, columns, sheet_name)

    logger.debug(
        f"Parsed sheet '{sheet_name}': header row {header_idx}, {totals.rows_parsed} rows, "
        f"income={totals.income_total:.2f} expense={totals.expense_total:.2f}"
    )

    if mode is ExtractionMode.LINKED:
        return ExtractedWorkbook(mode=mode, totals=totals)

    scanned = scan_report_metadata(rows, metadata_scan_rows)
    if scanned.report_from_date_key or scanned.report_to_date_key:
        metadata = scanned
    else:
        metadata = ReportMetadata(scanned.employee_name_from_report, totals.first_date_key, totals.first_date_key)

    return ExtractedWorkbook(mode=mode, totals=totals, metadata=metadata)
