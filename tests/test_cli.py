import pytest

import compress_file
from compress_file import main, output_name, sanitize_filename

from conftest import gradient_rgb, image_bytes


@pytest.mark.parametrize("name, expected", [
    ("report.pdf", "report"),
    ("my report_v2", "my report_v2"),
    ("a/b\\c.pdf", "abc"),
    ("  spaced name.txt ", "spaced name"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


@pytest.mark.parametrize("name", ["...", "!!!", "../../etc/passwd", "a" * 300])
def test_sanitize_filename_rejects(name):
    with pytest.raises(ValueError):
        sanitize_filename(name)


def test_output_name(tmp_path):
    source = tmp_path / "scan.final.pdf"
    assert output_name(source, "pdf") == "scan.final-compressed.pdf"
    assert output_name(source, "jpg", "holiday.png") == "holiday.jpg"


def test_compress_pdf_file(tmp_path, minimal_pdf):
    source = tmp_path / "doc.pdf"
    source.write_bytes(minimal_pdf)
    assert main([str(source), "--rounds", "1", "--workers", "1"]) == 0
    written = tmp_path / "doc-compressed.pdf"
    assert written.read_bytes().startswith(b"%PDF")


def test_pdf_detected_by_content(tmp_path, minimal_pdf):
    source = tmp_path / "no_extension"
    source.write_bytes(minimal_pdf)
    out_dir = tmp_path / "out"
    assert main([str(source), "--output-dir", str(out_dir)]) == 0
    assert (out_dir / "no_extension-compressed.pdf").exists()


def test_image_with_format_and_name(tmp_path):
    source = tmp_path / "picture.png"
    source.write_bytes(image_bytes(gradient_rgb(120, 80), "PNG"))
    assert main([str(source), "-f", "webp", "-o", "small"]) == 0
    assert (tmp_path / "small.webp").exists()


def test_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.pdf")]) == 1


def test_output_with_many_inputs(tmp_path, minimal_pdf):
    a = tmp_path / "a.pdf"
    b = tmp_path / "b.pdf"
    a.write_bytes(minimal_pdf)
    b.write_bytes(minimal_pdf)
    assert main([str(a), str(b), "-o", "x"]) == 1


def test_batch_with_a_bad_file(tmp_path, minimal_pdf):
    good = tmp_path / "good.pdf"
    bad = tmp_path / "bad.bin"
    good.write_bytes(minimal_pdf)
    bad.write_bytes(b"garbage bytes")
    assert main([str(good), str(bad), "--output-dir", str(tmp_path / "out")]) == 1
    assert (tmp_path / "out" / "good-compressed.pdf").exists()


def test_env_config_overridden_by_flags(monkeypatch):
    monkeypatch.setenv("PDF_COMPRESSION_ROUNDS", "4")
    monkeypatch.setenv("PDF_COMPRESSION_WORKERS", "2")
    args = compress_file.parse_args(["x.pdf", "--rounds", "1"])
    config = compress_file.build_config(args)
    assert config.rounds == 1
    assert config.max_workers == 2
