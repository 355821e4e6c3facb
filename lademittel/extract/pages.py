"""
Page source: file grouping and page rendering.

Scans of one delivery often arrive split over several files
(F1250031939.pdf, F1250031939_2.pdf, ...). Files sharing a name prefix form
a document group; its pages are numbered globally in sorted file order.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

import fitz  # PyMuPDF

_RE_SUFFIX = re.compile(r"[_-](?:\d+|page\d+|part\d+)$", re.I)

PDF_SUFFIXES = (".pdf",)
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".tif", ".tiff")


@dataclass
class PageImage:
    page_number: int  # 1-based, global within a group
    image_base64: str  # PNG
    width: int
    height: int
    source_file: str


@dataclass
class DocumentGroup:
    prefix: str
    files: List[Path]
    pages: List[PageImage]

    @property
    def images(self) -> List[str]:
        return [p.image_base64 for p in self.pages]


def file_prefix(path: Path) -> str:
    """
    F1250031939_2.pdf -> F1250031939, doc-page2.pdf -> doc, doc_part1.pdf -> doc
    """
    return _RE_SUFFIX.sub("", Path(path).stem)


def iter_sources(root: Path) -> List[Path]:
    suffixes = PDF_SUFFIXES + IMAGE_SUFFIXES
    return sorted(p for p in root.iterdir() if p.is_file() and p.suffix.lower() in suffixes)


def group_files_by_prefix(paths: Iterable[Path]) -> Dict[str, List[Path]]:
    groups: Dict[str, List[Path]] = {}
    for p in paths:
        groups.setdefault(file_prefix(p), []).append(Path(p))
    return {prefix: sorted(files) for prefix, files in sorted(groups.items())}


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def render_pdf(path: Path, zoom: float = 2.0) -> List[PageImage]:
    """Render every page to PNG at the given zoom (2.0 ~ 144 dpi)."""
    doc = fitz.open(path)
    try:
        matrix = fitz.Matrix(zoom, zoom)
        pages = []
        for i in range(doc.page_count):
            pix = doc.load_page(i).get_pixmap(matrix=matrix)
            pages.append(
                PageImage(
                    page_number=i + 1,
                    image_base64=_b64(pix.tobytes("png")),
                    width=pix.width,
                    height=pix.height,
                    source_file=Path(path).name,
                )
            )
        return pages
    finally:
        doc.close()


def load_image(path: Path) -> PageImage:
    """Single scanned image file, re-encoded as PNG."""
    pix = fitz.Pixmap(str(path))
    return PageImage(
        page_number=1,
        image_base64=_b64(pix.tobytes("png")),
        width=pix.width,
        height=pix.height,
        source_file=Path(path).name,
    )


def render_file(path: Path, zoom: float = 2.0) -> List[PageImage]:
    if Path(path).suffix.lower() in PDF_SUFFIXES:
        return render_pdf(path, zoom)
    return [load_image(path)]


def render_group(prefix: str, files: Sequence[Path], zoom: float = 2.0) -> DocumentGroup:
    """Render all files of a group; page numbers continue across files."""
    ordered = sorted(Path(f) for f in files)
    pages: List[PageImage] = []
    for f in ordered:
        for page in render_file(f, zoom):
            page.page_number = len(pages) + 1
            pages.append(page)
    return DocumentGroup(prefix=prefix, files=ordered, pages=pages)
