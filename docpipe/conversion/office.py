"""Office document to PDF conversion through LibreOffice."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from ..constants import LIBREOFFICE_TIMEOUT_SECONDS
from ..exceptions import ConversionError, DependencyError

logger = logging.getLogger(__name__)

_SOFFICE_BINARIES = ("soffice", "libreoffice")


def find_soffice() -> str:
    """Locate the LibreOffice executable.

    Raises:
        DependencyError: If LibreOffice is not installed
    """
    for name in _SOFFICE_BINARIES:
        path = shutil.which(name)
        if path:
            return path
    raise DependencyError("Converting office documents requires LibreOffice (soffice) on PATH")


async def convert_to_pdf(source: Path, output_dir: Path, timeout: float = LIBREOFFICE_TIMEOUT_SECONDS) -> Path:
    """Convert a document (docx, pptx, xlsx, odt, ...) to PDF.

    Args:
        source: Office document
        output_dir: Directory receiving the PDF
        timeout: Seconds before the conversion is abandoned

    Returns:
        Path of the converted PDF

    Raises:
        DependencyError: If LibreOffice is not installed
        ConversionError: If the conversion fails or times out
    """
    soffice = find_soffice()
    process = await asyncio.create_subprocess_exec(
        soffice,
        "--headless",
        "--convert-to",
        "pdf",
        "--outdir",
        str(output_dir),
        str(source),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError as e:
        process.kill()
        await process.wait()
        raise ConversionError(f"LibreOffice timed out converting {source.name} after {timeout}s") from e

    pdf_path = output_dir / f"{source.stem}.pdf"
    if process.returncode != 0 or not pdf_path.exists():
        message = stderr.decode(errors="replace").strip() if stderr else f"exit code {process.returncode}"
        raise ConversionError(f"LibreOffice failed to convert {source.name}: {message}")

    logger.info("Converted %s to PDF", source.name)
    return pdf_path
