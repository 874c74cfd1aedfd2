from __future__ import annotations

"""Functional test bootstrap for the form engine.

Points the application at a file-backed SQLite database under ``tmp/`` and
applies the SQL migrations once per session, before any test builds an app.
Also provides builders for the binary fixtures the document tests need: a
styled protocol workbook, a questionnaire workbook and a PDF form with text
fields.
"""

import os
import pathlib
from io import BytesIO
from typing import Callable, Iterable, Optional, Sequence

import fitz
import pytest
from openpyxl import Workbook
from openpyxl.styles import Font

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Use a file-backed SQLite DB to ensure persistence across connections and threads
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Migrations are applied explicitly below
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap() -> None:
    """Session-level bootstrap: apply migrations once for the shared DB."""
    from liftcheck.db.base import get_engine
    from liftcheck.db.migrations_runner import apply_migrations

    apply_migrations(get_engine(os.environ["TEST_DATABASE_URL"]))
    yield


@pytest.fixture(autouse=True)
def clean_template_tables() -> None:
    """Each test starts without remote template metadata."""
    from sqlalchemy import text

    from liftcheck.db.base import get_engine

    yield
    with get_engine(os.environ["TEST_DATABASE_URL"]).begin() as conn:
        conn.execute(text("DELETE FROM question_config"))
        conn.execute(text("DELETE FROM template"))


@pytest.fixture
def app_config(tmp_path):
    """Application config rooted in a per-test directory, storage unconfigured."""
    from liftcheck.config import AppConfig, DatabaseConfig, DocumentsConfig, StorageConfig, TemplatesConfig

    bundled = tmp_path / "templates"
    bundled.mkdir()
    return AppConfig(
        database=DatabaseConfig(dsn=os.environ["TEST_DATABASE_URL"]),
        templates=TemplatesConfig(
            bundled_dir=bundled,
            cache_dir=tmp_path / "cache",
            registry_path=bundled / "templates.json",
        ),
        storage=StorageConfig(),
        documents=DocumentsConfig(flatten_pdf=False),
    )


def _save(wb: Workbook) -> bytes:
    out = BytesIO()
    wb.save(out)
    return out.getvalue()


@pytest.fixture
def make_protocol_workbook() -> Callable[..., bytes]:
    """Build a protocol template whose B5 carries a bold font and a number format."""

    def _build(sheet_title: str = "Protokoll", extra_sheets: Sequence[str] = ()) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_title
        ws["A1"] = "Átvételi protokoll"
        ws["A5"] = "Gépház rendben?"
        ws["B5"].font = Font(bold=True, color="FF0000FF")
        ws["B5"].number_format = "0.00"
        ws["B5"] = "placeholder"
        ws["A7"] = "Aknamélység"
        ws["B7"].number_format = "0.00"
        ws.merge_cells("D20:F20")
        ws["D20"] = "Összevont"
        for name in extra_sheets:
            wb.create_sheet(name)
        return _save(wb)

    return _build


@pytest.fixture
def make_questions_workbook() -> Callable[..., bytes]:
    """Build a questionnaire-source workbook from a header row and data rows."""

    def _build(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = "Kérdések"
        ws.append(list(headers))
        for row in rows:
            ws.append(list(row))
        return _save(wb)

    return _build


@pytest.fixture
def make_pdf_form() -> Callable[..., bytes]:
    """Build a one-page PDF with a text field per name."""

    def _build(field_names: Sequence[str], signature: Optional[str] = None) -> bytes:
        doc = fitz.open()
        page = doc.new_page(width=595, height=842)
        y = 20.0
        for name in field_names:
            widget = fitz.Widget()
            widget.field_name = name
            widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
            widget.rect = fitz.Rect(50, y, 250, y + 14)
            page.add_widget(widget)
            y += 16
        if signature:
            widget = fitz.Widget()
            widget.field_name = signature
            widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
            widget.rect = fitz.Rect(300, 700, 500, 780)
            page.add_widget(widget)
        binary = doc.tobytes()
        doc.close()
        return binary

    return _build


@pytest.fixture
def pdf_fields() -> Callable[[bytes], dict[str, str]]:
    """Return a reader of ``{field name: value}`` for every widget of a PDF."""

    def _read(binary: bytes) -> dict[str, str]:
        doc = fitz.open(stream=binary, filetype="pdf")
        try:
            return {w.field_name: w.field_value for page in doc for w in page.widgets()}
        finally:
            doc.close()

    return _read
