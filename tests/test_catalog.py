from __future__ import annotations

import io
from pathlib import Path

import pytest

from studydesk.errors import PdfInspectionError
from studydesk.processing import get_pdf_page_count
from studydesk.services.catalog import (
    build_tree,
    count_by_category,
    flatten_tree,
    infer_tag,
    parse_week,
    scan_materials,
    serialize_tree,
)
from studydesk.services.metadata import MetadataEntry


def _build_sample_pdf(page_count: int = 2) -> bytes:
    fitz = pytest.importorskip("fitz")
    document = fitz.open()
    for index in range(page_count):
        page = document.new_page()
        page.insert_text((72, 72 + (index * 18)), f"Sample page {index + 1}")
    buffer = io.BytesIO()
    document.save(buffer)
    document.close()
    return buffer.getvalue()


def _write(root: Path, relative: str, payload: bytes = b"pdf") -> None:
    target = root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(payload)


def _fixed_pages(_path: Path) -> int:
    return 4


@pytest.mark.parametrize(
    ("name", "expected"),
    [("sem1", 1), ("Sem12 - intro", 12), ("SEM3", 3), ("week1", None), ("semana", None)],
)
def test_parse_week(name: str, expected) -> None:
    assert parse_week(name) == expected


def test_infer_tag_uses_nearest_classified_folder() -> None:
    assert infer_tag(["sem1", "Teoría"]) == "theory"
    assert infer_tag(["sem1", "practica", "extra"]) == "practice"
    assert infer_tag(["teoria", "Práctica"]) == "practice"
    assert infer_tag(["sem1"]) == "unset"


def test_scan_materials_walks_subject_week_layout(tmp_path: Path) -> None:
    _write(tmp_path, "Math/sem1/teoria/limits.pdf")
    _write(tmp_path, "Math/sem1/practica/exercises.PDF")
    _write(tmp_path, "Math/sem2/notes.pdf")
    _write(tmp_path, "Math/sem2/readme.txt")
    _write(tmp_path, "Math/extras/ignored.pdf")
    _write(tmp_path, "Math/sem1/.hidden/skip.pdf")
    _write(tmp_path, "system/sem1/skip.pdf")
    _write(tmp_path, "Biology/sem1/cells.pdf")

    items = scan_materials(tmp_path, page_counter=_fixed_pages)

    assert [item.path for item in items] == [
        "Biology/sem1/cells.pdf",
        "Math/sem1/practica/exercises.PDF",
        "Math/sem1/teoria/limits.pdf",
        "Math/sem2/notes.pdf",
    ]
    by_path = {item.path: item for item in items}
    assert by_path["Math/sem1/teoria/limits.pdf"].tag == "theory"
    assert by_path["Math/sem1/practica/exercises.PDF"].tag == "practice"
    assert by_path["Math/sem2/notes.pdf"].tag == "unset"
    assert by_path["Math/sem2/notes.pdf"].week == 2
    assert all(item.pages == 4 for item in items)


def test_scan_materials_prefers_cached_metadata(tmp_path: Path) -> None:
    _write(tmp_path, "Math/sem1/limits.pdf")
    metadata = {"Math/sem1/limits.pdf": MetadataEntry(pages=9, tag="practice")}

    def _fail(_path: Path) -> int:
        raise AssertionError("page counter should not be used")

    (item,) = scan_materials(tmp_path, metadata, page_counter=_fail)

    assert item.pages == 9
    assert item.tag == "practice"


def test_scan_materials_tolerates_unreadable_pdfs(tmp_path: Path) -> None:
    _write(tmp_path, "Math/sem1/broken.pdf", b"not a pdf")

    def _broken(_path: Path) -> int:
        raise PdfInspectionError("corrupt")

    (item,) = scan_materials(tmp_path, page_counter=_broken)
    assert item.pages == 0


def test_scan_materials_missing_root_is_empty(tmp_path: Path) -> None:
    assert scan_materials(tmp_path / "missing") == []


def test_page_count_reads_real_pdf(tmp_path: Path) -> None:
    payload = _build_sample_pdf(3)
    _write(tmp_path, "Math/sem1/real.pdf", payload)

    assert get_pdf_page_count(payload) == 3
    (item,) = scan_materials(tmp_path)
    assert item.pages == 3


def test_tree_helpers_group_and_count(tmp_path: Path) -> None:
    _write(tmp_path, "Math/sem2/teoria/b.pdf")
    _write(tmp_path, "Math/sem1/teoria/a.pdf")
    _write(tmp_path, "Math/sem1/practica/c.pdf")
    _write(tmp_path, "Art/sem1/loose.pdf")
    items = scan_materials(tmp_path, page_counter=_fixed_pages)

    tree = build_tree(items)

    assert list(tree) == [1, 2]
    assert [item.name for item in tree[1]["Math"]] == ["a.pdf", "c.pdf"]
    assert sorted(item.path for item in flatten_tree(tree)) == sorted(item.path for item in items)
    serialised = serialize_tree(tree)
    assert set(serialised) == {"1", "2"}
    assert serialised["2"]["Math"][0]["tag"] == "theory"
    assert count_by_category(items) == {("Math", "theory"): 2, ("Math", "practice"): 1}


def test_scan_materials_keeps_an_explicitly_unset_tag(tmp_path: Path) -> None:
    _write(tmp_path, "Math/sem1/teoria/limits.pdf")
    _write(tmp_path, "Math/sem1/teoria/series.pdf")
    metadata = {
        "Math/sem1/teoria/limits.pdf": MetadataEntry(tag="unset"),
        "Math/sem1/teoria/series.pdf": MetadataEntry(pages=2),
    }

    by_path = {item.path: item for item in scan_materials(tmp_path, metadata, page_counter=_fixed_pages)}

    assert by_path["Math/sem1/teoria/limits.pdf"].tag == "unset"
    assert by_path["Math/sem1/teoria/series.pdf"].tag == "theory"


def test_scan_materials_skips_unreadable_subject(tmp_path: Path, monkeypatch, caplog) -> None:
    _write(tmp_path, "Art/sem1/sketch.pdf")
    _write(tmp_path, "Math/sem1/limits.pdf")
    blocked = tmp_path / "Art"
    original_iterdir = Path.iterdir

    def _iterdir(self: Path):
        if self == blocked:
            raise PermissionError("denied")
        return original_iterdir(self)

    monkeypatch.setattr(Path, "iterdir", _iterdir)

    items = scan_materials(tmp_path, page_counter=_fixed_pages)

    assert [item.path for item in items] == ["Math/sem1/limits.pdf"]
    assert "Skipping subject 'Art'" in caplog.text
