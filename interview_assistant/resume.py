"""
Resume text extraction.

Turns an uploaded PDF (pdfplumber) or DOCX (python-docx) into plain text.
Only those two formats are accepted. A file that cannot be parsed yields a
placeholder extraction built from the file name instead of an error, so a
malformed upload never blocks the interview.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Optional

import pdfplumber
from docx import Document

from .models import ContactInfo
from .parsing import clean_contact_value


__all__ = [
    "ResumeExtraction",
    "UnsupportedResumeFormatError",
    "SUPPORTED_EXTENSIONS",
    "extract_resume_text",
    "missing_contact_fields",
]


logger = logging.getLogger(__name__)


SUPPORTED_EXTENSIONS = frozenset({"pdf", "docx"})

PLACEHOLDER_NAME = "Demo Candidate"

_FILENAME_NOISE = frozenset({"resume", "cv", "final", "updated", "new", "copy", "draft"})


class UnsupportedResumeFormatError(Exception):
    """Raised for uploads that are neither PDF nor DOCX."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__("Unsupported file format. Please upload a PDF or DOCX file.")


@dataclass
class ResumeExtraction:
    """Text pulled from a resume, plus placeholder contact data if parsing failed."""

    filename: str
    text: str
    used_placeholder: bool = False
    placeholder_contact: ContactInfo = field(default_factory=ContactInfo)


def _extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lower().lstrip(".")


def _extract_pdf(data: bytes) -> str:
    pages: list[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n".join(pages)


def _extract_docx(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            lines.append(" | ".join(cell.text for cell in row.cells))
    return "\n".join(lines)


def _placeholder_name(filename: str) -> str:
    stem = PurePath(filename or "").stem
    words = [
        w for w in re.split(r"[\s_.\-]+", stem)
        if w.isalpha() and w.lower() not in _FILENAME_NOISE
    ]
    if len(words) >= 2:
        return f"{words[0].capitalize()} {words[1].capitalize()}"
    return PLACEHOLDER_NAME


def _placeholder(filename: str) -> ResumeExtraction:
    name = _placeholder_name(filename)
    return ResumeExtraction(
        filename=filename,
        text=(
            f"{name} - resume content could not be read from {filename}. "
            "Experienced full-stack developer; ask general React, JavaScript "
            "and Node.js questions."
        ),
        used_placeholder=True,
        placeholder_contact=ContactInfo(name=name),
    )


def extract_resume_text(data: bytes, filename: str) -> ResumeExtraction:
    """
    Extract plain text from a resume upload.

    Args:
        data: Raw file bytes.
        filename: Original file name; its extension selects the parser.

    Returns:
        The extracted text. Empty uploads give empty text; uploads that fail
        to parse give a placeholder extraction.

    Raises:
        UnsupportedResumeFormatError: If the extension is not pdf or docx.
    """
    extension = _extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedResumeFormatError(filename)

    if not data:
        logger.warning("Empty resume upload: %s", filename)
        return ResumeExtraction(filename=filename, text="")

    try:
        text = _extract_pdf(data) if extension == "pdf" else _extract_docx(data)
    except Exception as e:
        logger.warning("Could not parse %s, using placeholder data: %s", filename, e)
        return _placeholder(filename)

    text = text.strip()
    logger.info("Extracted %d characters from %s", len(text), filename)
    return ResumeExtraction(filename=filename, text=text)


def missing_contact_fields(info: Optional[ContactInfo]) -> list[str]:
    """Labels of the contact fields still missing ("Name", "Email", "Phone Number")."""
    info = info or ContactInfo()
    missing: list[str] = []
    if clean_contact_value(info.name) is None:
        missing.append("Name")
    if clean_contact_value(info.email) is None:
        missing.append("Email")
    if clean_contact_value(info.phone) is None:
        missing.append("Phone Number")
    return missing
