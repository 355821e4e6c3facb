from pathlib import Path

import fitz

from lademittel.extract.pages import file_prefix, group_files_by_prefix, iter_sources, render_group


def test_file_prefix():
    assert file_prefix(Path("F1250031939.pdf")) == "F1250031939"
    assert file_prefix(Path("F1250031939_2.pdf")) == "F1250031939"
    assert file_prefix(Path("scan-page2.png")) == "scan"
    assert file_prefix(Path("doc_part1.pdf")) == "doc"
    assert file_prefix(Path("Lieferung_Nord.pdf")) == "Lieferung_Nord"


def test_group_files_by_prefix():
    groups = group_files_by_prefix(
        [Path("b.pdf"), Path("a_2.pdf"), Path("a.pdf"), Path("a_1.jpg")]
    )
    assert list(groups) == ["a", "b"]
    assert groups["a"] == [Path("a.pdf"), Path("a_1.jpg"), Path("a_2.pdf")]


def test_iter_sources_skips_other_files(tmp_path):
    for name in ("x.pdf", "y.PNG", "notes.txt"):
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "sub").mkdir()
    assert [p.name for p in iter_sources(tmp_path)] == ["x.pdf", "y.PNG"]


def _pdf(path: Path, pages: int) -> Path:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=200, height=100)
    doc.save(str(path))
    doc.close()
    return path


def test_render_group_numbers_pages_across_files(tmp_path):
    a = _pdf(tmp_path / "F1.pdf", 1)
    b = _pdf(tmp_path / "F1_2.pdf", 2)
    group = render_group("F1", [b, a], zoom=1.0)

    assert group.files == [a, b]
    assert [p.page_number for p in group.pages] == [1, 2, 3]
    assert [p.source_file for p in group.pages] == ["F1.pdf", "F1_2.pdf", "F1_2.pdf"]
    assert (group.pages[0].width, group.pages[0].height) == (200, 100)
    assert len(group.images) == 3
    assert all(img for img in group.images)
