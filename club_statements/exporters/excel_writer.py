from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from xml.sax.saxutils import escape, quoteattr
from zipfile import ZIP_DEFLATED, ZipFile

from club_statements.models.contracts import Transaction

TRANSACTION_COLUMNS = ["Date", "Description", "Amount", "Type", "Category", "Event", "Confidence", "Page", "Method"]

_XML_DECL = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
_MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
_CT_SHEET = "application/vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"
_CT_WORKBOOK = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"


def _col_name(index: int) -> str:
    letters = ""
    idx = index
    while idx > 0:
        idx, rem = divmod(idx - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def _render_cell(row: int, col: int, value: object) -> str:
    ref = f"{_col_name(col)}{row}"
    if isinstance(value, Decimal):
        return f'<c r="{ref}"><v>{value:.2f}</v></c>'
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f'<c r="{ref}"><v>{value}</v></c>'
    text = escape("" if value is None else str(value))
    return f'<c r="{ref}" t="inlineStr"><is><t>{text}</t></is></c>'


def _sheet_xml(rows: list[list[object]]) -> str:
    row_xml = []
    for row_index, row_values in enumerate(rows, start=1):
        cells = "".join(_render_cell(row_index, col_index, val) for col_index, val in enumerate(row_values, start=1))
        row_xml.append(f'<row r="{row_index}">{cells}</row>')
    return f'{_XML_DECL}<worksheet xmlns="{_MAIN_NS}"><sheetData>{"".join(row_xml)}</sheetData></worksheet>'


def _package_parts(sheet_name: str, rows: list[list[object]]) -> dict[str, str]:
    return {
        "[Content_Types].xml": (
            f'{_XML_DECL}<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
            '<Default Extension="xml" ContentType="application/xml"/>'
            f'<Override PartName="/xl/workbook.xml" ContentType="{_CT_WORKBOOK}"/>'
            f'<Override PartName="/xl/worksheets/sheet1.xml" ContentType="{_CT_SHEET}"/>'
            "</Types>"
        ),
        "_rels/.rels": (
            f'{_XML_DECL}<Relationships xmlns="{_PKG_REL_NS}">'
            f'<Relationship Id="rId1" Type="{_REL_NS}/officeDocument" Target="xl/workbook.xml"/>'
            "</Relationships>"
        ),
        "xl/workbook.xml": (
            f'{_XML_DECL}<workbook xmlns="{_MAIN_NS}" xmlns:r="{_REL_NS}">'
            f'<sheets><sheet name={quoteattr(sheet_name[:31])} sheetId="1" r:id="rId1"/></sheets>'
            "</workbook>"
        ),
        "xl/_rels/workbook.xml.rels": (
            f'{_XML_DECL}<Relationships xmlns="{_PKG_REL_NS}">'
            f'<Relationship Id="rId1" Type="{_REL_NS}/worksheet" Target="worksheets/sheet1.xml"/>'
            "</Relationships>"
        ),
        "xl/worksheets/sheet1.xml": _sheet_xml(rows),
    }


def write_excel(path: Path, rows: list[list[object]], sheet_name: str = "Summary") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with ZipFile(path, "w", compression=ZIP_DEFLATED) as zf:
        for name, xml in _package_parts(sheet_name, rows).items():
            zf.writestr(name, xml)


def transaction_rows(transactions: list[Transaction]) -> list[list[object]]:
    rows: list[list[object]] = [list(TRANSACTION_COLUMNS)]
    for tx in transactions:
        rows.append([tx.date, tx.description, tx.amount, tx.type, tx.category, tx.event, tx.confidence, tx.page, tx.method])
    return rows


def write_transactions_excel(path: Path, transactions: list[Transaction]) -> None:
    write_excel(path, transaction_rows(transactions), sheet_name="Transactions")
