"""Text extraction: download a learning document and turn it into plain text.

Supported formats: PDF (PyMuPDF), DOCX (python-docx), PPTX (python-pptx),
XLSX (openpyxl), and TXT / MD / CSV.  The parser is chosen from the URL
suffix first, then from the response ``Content-Type``.

Every failure (unreachable source, unsupported type, parse error, too little
text) surfaces as :class:`ExtractionError`.  There are no retries.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from pathlib import PurePosixPath
from urllib.parse import urlparse

import httpx

from config.settings import get_settings
from errors.exceptions import ExtractionError

logger = logging.getLogger(__name__)

# Documents shorter than this are treated as empty (scanned PDFs, blank uploads).
MIN_TEXT_LENGTH = 100

_MIME_TO_KIND: dict[str, str] = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "text/plain": "text",
    "text/markdown": "text",
    "text/csv": "text",
}

_SUFFIX_TO_KIND: dict[str, str] = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".pptx": "pptx",
    ".xlsx": "xlsx",
    ".txt": "text",
    ".md": "text",
    ".csv": "text",
}

_INLINE_SPACE = re.compile(r"[ \t\f\v\u00a0]+")
_LINE_EDGE_SPACE = re.compile(r" *\n *")
_BLANK_LINES = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    """Collapse space runs and blank-line runs, then strip."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _INLINE_SPACE.sub(" ", text)
    text = _LINE_EDGE_SPACE.sub("\n", text)
    text = _BLANK_LINES.sub("\n\n", text)
    return text.strip()


def detect_kind(source_url: str, content_type: str | None = None) -> str | None:
    """Return the parser kind for a document, or ``None`` if unsupported."""
    suffix = PurePosixPath(urlparse(source_url).path).suffix.lower()
    if suffix in _SUFFIX_TO_KIND:
        return _SUFFIX_TO_KIND[suffix]
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        return _MIME_TO_KIND.get(mime)
    return None


# ── Parsers (sync, run in a worker thread) ────────────────────


def _parse_pdf(data: bytes) -> str:
    import fitz  # PyMuPDF

    with fitz.open(stream=data, filetype="pdf") as pdf:
        return "\n".join(page.get_text() for page in pdf)


def _parse_docx(data: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs if p.text.strip())


def _parse_pptx(data: bytes) -> str:
    from pptx import Presentation

    prs = Presentation(io.BytesIO(data))
    slides: list[str] = []
    for i, slide in enumerate(prs.slides, 1):
        lines = [
            paragraph.text.strip()
            for shape in slide.shapes
            if shape.has_text_frame
            for paragraph in shape.text_frame.paragraphs
            if paragraph.text.strip()
        ]
        if lines:
            slides.append(f"[Slide {i}]\n" + "\n".join(lines))
    return "\n\n".join(slides)


def _parse_xlsx(data: bytes) -> str:
    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        sheets: list[str] = []
        for ws in wb.worksheets:
            rows: list[str] = []
            for row in ws.iter_rows(values_only=True):
                cells = [str(c) if c is not None else "" for c in row]
                if any(c.strip() for c in cells):
                    rows.append("\t".join(cells))
            if rows:
                sheets.append(f"[Sheet: {ws.title}]\n" + "\n".join(rows))
        return "\n\n".join(sheets)
    finally:
        wb.close()


def _parse_text(data: bytes) -> str:
    return data.decode("utf-8", errors="ignore")


_PARSERS = {
    "pdf": _parse_pdf,
    "docx": _parse_docx,
    "pptx": _parse_pptx,
    "xlsx": _parse_xlsx,
    "text": _parse_text,
}


class DocumentTextExtractor:
    """Download a document over HTTP and return its normalized text.

    Args:
        client: Shared ``httpx.AsyncClient``.  When omitted, a short-lived
            client is opened per extraction.
        timeout: Download timeout in seconds (default from settings).
        max_bytes: Reject documents larger than this (default from settings).
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float | None = None,
        max_bytes: int | None = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._timeout = timeout or settings.extraction_timeout_seconds
        self._max_bytes = max_bytes or settings.max_document_bytes

    async def extract(self, source_url: str) -> str:
        """Extract text from *source_url*.

        Raises:
            ExtractionError: On any download, type or parse failure, or when
                fewer than ``MIN_TEXT_LENGTH`` characters remain.
        """
        data, content_type = await self._download(source_url)

        kind = detect_kind(source_url, content_type)
        if kind is None:
            raise ExtractionError(
                source_url, f"unsupported document type (content-type={content_type!r})"
            )

        try:
            raw = await asyncio.to_thread(_PARSERS[kind], data)
        except Exception as exc:
            logger.warning("Failed to parse %s document %s: %s", kind, source_url, exc)
            raise ExtractionError(source_url, f"could not parse {kind} document: {exc}") from exc

        text = normalize_whitespace(raw)
        if len(text) < MIN_TEXT_LENGTH:
            raise ExtractionError(
                source_url,
                f"document has too little text ({len(text)} chars, need {MIN_TEXT_LENGTH})",
            )

        logger.info("Extracted %d chars (%s) from %s", len(text), kind, source_url)
        return text

    async def _download(self, source_url: str) -> tuple[bytes, str | None]:
        try:
            if self._client is not None:
                resp = await self._client.get(source_url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                    resp = await client.get(source_url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                source_url, f"source returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(source_url, f"source unreachable: {exc!r}") from exc

        if len(resp.content) > self._max_bytes:
            raise ExtractionError(
                source_url, f"document exceeds {self._max_bytes} bytes"
            )

        logger.debug("Downloaded %s (%d bytes)", source_url, len(resp.content))
        return resp.content, resp.headers.get("content-type")
