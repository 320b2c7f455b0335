from __future__ import annotations

import io
from dataclasses import dataclass

from pypdf import PdfReader
from pypdf.errors import PdfReadError

TEXT_MIME_TYPES = {"text/plain", "text/csv", "text/markdown", "application/json"}


@dataclass(frozen=True)
class ExtractedText:
    """
    Text pulled from an uploaded document before it goes to the vector store.
    `pages` keeps page boundaries for PDFs; other formats are a single page.
    """

    pages: list[str]

    @property
    def text(self) -> str:
        return "\n\n".join([p for p in self.pages if (p or "").strip()]).strip()


def extract_pdf_pages(file_bytes: bytes) -> ExtractedText:
    reader = PdfReader(io.BytesIO(file_bytes))
    pages: list[str] = []
    for i, page in enumerate(reader.pages, start=1):
        txt = _normalize_text(page.extract_text() or "")
        pages.append(f"[PAGE {i}]\n{txt}".strip())
    return ExtractedText(pages=pages)


def extract_text(file_bytes: bytes, *, mime_type: str) -> ExtractedText:
    """Best-effort extraction; unsupported formats yield no text rather than failing the pipeline."""
    if mime_type == "application/pdf":
        try:
            return extract_pdf_pages(file_bytes)
        except PdfReadError:
            return ExtractedText(pages=[])
    if mime_type in TEXT_MIME_TYPES or mime_type.startswith("text/"):
        return ExtractedText(pages=[_normalize_text(file_bytes.decode("utf-8", errors="replace"))])
    return ExtractedText(pages=[])


def _normalize_text(t: str) -> str:
    t = (t or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [ln.rstrip() for ln in t.split("\n")]
    # Collapse excessive blank lines (max 2 in a row)
    out: list[str] = []
    blank = 0
    for ln in lines:
        if ln.strip() == "":
            blank += 1
            if blank <= 2:
                out.append("")
        else:
            blank = 0
            out.append(ln)
    return "\n".join(out).strip()
