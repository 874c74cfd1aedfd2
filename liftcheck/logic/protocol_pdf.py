"""Workbook to PDF conversion through a headless office process.

The converter runs in its own temporary directory, which is removed on every
exit path; ``subprocess.run`` kills the process when the timeout expires.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path

from liftcheck.logic.errors import RenderingError

logger = logging.getLogger(__name__)


def render_workbook_pdf(binary: bytes, office_binary: str = "soffice", timeout_seconds: float = 120.0) -> bytes:
    """Convert a populated workbook to PDF.

    Raises ``RenderingError`` if the converter is missing, fails, times out
    or produces no output.
    """
    if not binary:
        raise RenderingError("nothing to render: workbook is empty")
    with tempfile.TemporaryDirectory(prefix="liftcheck-render-") as workdir:
        source = Path(workdir) / "protocol.xlsx"
        source.write_bytes(binary)
        command = [
            office_binary,
            "--headless",
            "--norestore",
            f"-env:UserInstallation=file://{workdir}/profile",
            "--convert-to",
            "pdf",
            "--outdir",
            workdir,
            str(source),
        ]
        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=timeout_seconds, check=False)
        except FileNotFoundError as e:
            raise RenderingError(f"office converter not found: {office_binary}") from e
        except subprocess.TimeoutExpired as e:
            logger.error("protocol.render.timeout seconds=%s", timeout_seconds)
            raise RenderingError(f"conversion timed out after {timeout_seconds} seconds") from e

        target = Path(workdir) / "protocol.pdf"
        if result.returncode != 0 or not target.exists():
            logger.error(
                "protocol.render.failed returncode=%s stderr=%s",
                result.returncode,
                (result.stderr or "").strip()[:500],
            )
            raise RenderingError(f"conversion failed with exit code {result.returncode}")
        pdf = target.read_bytes()
    logger.info("protocol.render.done bytes=%d", len(pdf))
    return pdf


__all__ = ["render_workbook_pdf"]
