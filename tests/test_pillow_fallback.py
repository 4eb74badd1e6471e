import io
from pathlib import Path

from PIL import Image

from exifstamp.meta.pillow_fallback import extract_pillow_metadata


def test_extract_pillow_metadata_is_safe_on_unidentified_files(tmp_path: Path) -> None:
    broken = tmp_path / "sample.jpg"
    broken.write_bytes(b"not-a-real-image")

    metadata = extract_pillow_metadata(broken)

    assert metadata == {"SourceFile": str(broken)}
    assert extract_pillow_metadata(b"garbage") == {}


def test_extract_pillow_metadata_reads_ifd0_tags() -> None:
    exif = Image.Exif()
    exif[0x010F] = "Acme"
    exif[0x0110] = "X1"
    exif[0x0132] = "2024:05:01 10:00:00"
    buffer = io.BytesIO()
    Image.new("RGB", (32, 24), "#808080").save(buffer, "JPEG", exif=exif)

    metadata = extract_pillow_metadata(buffer.getvalue())

    assert metadata["Make"] == "Acme"
    assert metadata["Model"] == "X1"
    assert metadata["DateTime"] == "2024:05:01 10:00:00"
