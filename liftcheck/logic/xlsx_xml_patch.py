"""Format-preserving cell writes directly on workbook markup.

An .xlsx file is a ZIP package; each worksheet is an XML part. Only the
targeted ``<c>`` elements are rewritten: their ``s`` (style) and any other
attributes are kept, so number formats, borders, merged ranges, images and
conditional formatting are untouched. Strings are written as inline strings,
so the shared string table is never modified. Missing cells and rows are
inserted in document order.
"""

from __future__ import annotations

import logging
import posixpath
import re
import zipfile
from io import BytesIO
from typing import Iterable, Optional, Sequence
from xml.etree import ElementTree as ET

from liftcheck.logic.errors import PartialWriteFailure
from liftcheck.models.generation import CellMapping

logger = logging.getLogger(__name__)

_NS_MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
_NS_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_NS_PKG_REL = "http://schemas.openxmlformats.org/package/2006/relationships"

_ATTR = re.compile(r'([\w:]+)\s*=\s*"([^"]*)"')
_CELL_REF = re.compile(r"^([A-Z]{1,3})([0-9]+)$")
_ROW_TAG = re.compile(r"<row\b([^>]*?)(/>|>)")
_CELL_TAG = re.compile(r'<c\b[^>]*?\br="([A-Z]{1,3}[0-9]+)"')
_ILLEGAL_XML = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")
_CALC_CHAIN = "xl/calcChain.xml"


class MarkupPatchError(Exception):
    """The package is not a workbook this patcher can edit."""


def is_zip_package(content: bytes) -> bool:
    """Return True if ``content`` starts with the ZIP local file header."""
    return isinstance(content, (bytes, bytearray)) and bytes(content[:4]) == b"PK\x03\x04"


def column_index(letters: str) -> int:
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - 64)
    return idx


def _split_ref(ref: str) -> tuple[int, int]:
    match = _CELL_REF.match(ref)
    if not match:
        raise ValueError(f"invalid cell reference {ref!r}")
    return column_index(match.group(1)), int(match.group(2))


def _escape(text: str) -> str:
    text = _ILLEGAL_XML.sub("", text)
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _attrs(raw: str) -> list[tuple[str, str]]:
    return _ATTR.findall(raw)


def _render_cell(ref: str, value: object, kept: Sequence[tuple[str, str]]) -> str:
    attrs = [(k, v) for k, v in kept if k not in ("r", "t")]
    head = " ".join([f'r="{ref}"'] + [f'{k}="{v}"' for k, v in attrs])
    if isinstance(value, bool):
        return f'<c {head} t="b"><v>{1 if value else 0}</v></c>'
    if isinstance(value, (int, float)):
        return f"<c {head}><v>{value!r}</v></c>"
    return f'<c {head} t="inlineStr"><is><t xml:space="preserve">{_escape(str(value))}</t></is></c>'


def _find_cell(xml: str, ref: str) -> Optional[re.Match]:
    pattern = re.compile(r'<c\b(?P<attrs>[^>]*?\br="' + ref + r'"[^>]*?)(?:/>|>(?P<body>.*?)</c>)', re.S)
    return pattern.search(xml)


def _find_row(xml: str, row: int) -> Optional[re.Match]:
    pattern = re.compile(r'<row\b(?P<attrs>[^>]*?\br="' + str(row) + r'"[^>]*?)(?:/>|>(?P<body>.*?)</row>)', re.S)
    return pattern.search(xml)


def set_cell(xml: str, ref: str, value: object) -> str:
    """Return sheet markup with ``ref`` holding ``value``, style preserved."""
    col, row = _split_ref(ref)
    existing = _find_cell(xml, ref)
    if existing is not None:
        kept = _attrs(existing.group("attrs"))
        return xml[: existing.start()] + _render_cell(ref, value, kept) + xml[existing.end():]

    new_cell = _render_cell(ref, value, [])
    row_match = _find_row(xml, row)
    if row_match is not None:
        body = row_match.group("body")
        row_attrs = row_match.group("attrs").rstrip()
        if body is None:
            return xml[: row_match.start()] + f"<row{row_attrs}>{new_cell}</row>" + xml[row_match.end():]
        body_start = row_match.start("body")
        insert_at = body_start + len(body)
        for cell in _CELL_TAG.finditer(body):
            if _split_ref(cell.group(1))[0] > col:
                insert_at = body_start + cell.start()
                break
        return xml[:insert_at] + new_cell + xml[insert_at:]

    new_row = f'<row r="{row}">{new_cell}</row>'
    if "<sheetData/>" in xml:
        return xml.replace("<sheetData/>", f"<sheetData>{new_row}</sheetData>", 1)
    data_start = xml.find("<sheetData>")
    data_end = xml.find("</sheetData>")
    if data_start < 0 or data_end < 0:
        raise MarkupPatchError("worksheet has no sheetData element")
    insert_at = data_end
    for row_tag in _ROW_TAG.finditer(xml, data_start, data_end):
        r_attr = dict(_attrs(row_tag.group(1))).get("r")
        if r_attr and int(r_attr) > row:
            insert_at = row_tag.start()
            break
    return xml[:insert_at] + new_row + xml[insert_at:]


def sheet_parts(zf: zipfile.ZipFile) -> list[tuple[str, str]]:
    """Return ``(sheet name, part path)`` pairs in workbook order."""
    try:
        workbook = ET.fromstring(zf.read("xl/workbook.xml"))
        rels = ET.fromstring(zf.read("xl/_rels/workbook.xml.rels"))
    except (KeyError, ET.ParseError) as e:
        raise MarkupPatchError(f"not a spreadsheet package: {e}") from e
    targets = {
        rel.get("Id"): rel.get("Target", "")
        for rel in rels.findall(f"{{{_NS_PKG_REL}}}Relationship")
    }
    parts: list[tuple[str, str]] = []
    for sheet in workbook.iter(f"{{{_NS_MAIN}}}sheet"):
        target = targets.get(sheet.get(f"{{{_NS_REL}}}id"), "")
        if not target:
            continue
        path = target.lstrip("/") if target.startswith("/") else posixpath.normpath(posixpath.join("xl", target))
        parts.append((sheet.get("name", ""), path))
    if not parts:
        raise MarkupPatchError("workbook declares no worksheets")
    return parts


def _drop_calc_chain(files: dict[str, bytes]) -> None:
    # Rewritten cells may have lost their formulas; Excel rebuilds the chain.
    if files.pop(_CALC_CHAIN, None) is None:
        return
    ct = files.get("[Content_Types].xml")
    if ct is not None:
        files["[Content_Types].xml"] = re.sub(rb'<Override[^>]*PartName="/xl/calcChain.xml"[^>]*/>', b"", ct)
    rels = files.get("xl/_rels/workbook.xml.rels")
    if rels is not None:
        files["xl/_rels/workbook.xml.rels"] = re.sub(rb'<Relationship[^>]*Target="[^"]*calcChain.xml"[^>]*/>', b"", rels)


def patch_workbook(
    binary: bytes,
    mappings: Iterable[CellMapping],
) -> tuple[bytes, int, list[PartialWriteFailure]]:
    """Apply cell writes to a workbook package without touching formatting.

    Returns the new package, the number of cells written and a failure per
    mapping that targets an unknown sheet. Raises ``MarkupPatchError`` (or
    ``zipfile.BadZipFile``) when the package cannot be edited at all.
    """
    if not is_zip_package(binary):
        raise MarkupPatchError("template is not a ZIP package")
    failures: list[PartialWriteFailure] = []
    written = 0
    with zipfile.ZipFile(BytesIO(binary)) as zin:
        infos = zin.infolist()
        files = {info.filename: zin.read(info.filename) for info in infos}
        parts = sheet_parts(zin)

    by_name = {name: path for name, path in parts}
    default_part = parts[0][1]
    sheets: dict[str, str] = {}

    for mapping in mappings:
        if mapping.value is None:
            continue
        part = by_name.get(mapping.sheet_name) if mapping.sheet_name else default_part
        if part is None:
            failures.append(
                PartialWriteFailure(mapping.cell_reference, f"sheet {mapping.sheet_name!r} not found", mapping.question_id)
            )
            continue
        if part not in sheets:
            if part not in files:
                raise MarkupPatchError(f"worksheet part missing: {part}")
            sheets[part] = files[part].decode("utf-8")
        sheets[part] = set_cell(sheets[part], mapping.cell_reference, mapping.value)
        written += 1

    for part, xml in sheets.items():
        files[part] = xml.encode("utf-8")
    if sheets:
        _drop_calc_chain(files)

    out = BytesIO()
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zout:
        for info in infos:
            if info.filename in files:
                zout.writestr(info, files[info.filename])
    logger.info("xlsx.patch.done cells=%d sheets=%d failures=%d", written, len(sheets), len(failures))
    return out.getvalue(), written, failures


__all__ = [
    "MarkupPatchError",
    "column_index",
    "is_zip_package",
    "patch_workbook",
    "set_cell",
    "sheet_parts",
]
