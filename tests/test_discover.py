from pathlib import Path

from exifstamp.discover import discover_inputs


def test_discover_inputs_filters_and_skips_output(tmp_path: Path) -> None:
    (tmp_path / "b.JPG").write_bytes(b"x")
    (tmp_path / "a.png").write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    nested = tmp_path / "trip"
    nested.mkdir()
    (nested / "c.webp").write_bytes(b"x")
    output = tmp_path / "output"
    output.mkdir()
    (output / "edited_a.png").write_bytes(b"x")

    assert [p.name for p in discover_inputs(tmp_path)] == ["a.png", "b.JPG"]
    assert [p.name for p in discover_inputs(tmp_path, recursive=True)] == ["a.png", "b.JPG", "c.webp"]
    assert discover_inputs(tmp_path, extensions=["webp"], recursive=True) == [nested / "c.webp"]
    assert discover_inputs(tmp_path / "a.png") == [tmp_path / "a.png"]
