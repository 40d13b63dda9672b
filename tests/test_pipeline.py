import io

import pikepdf
import pytest
from pikepdf import Name

from pdf_compressor import (
    CompressionConfig,
    EmptyInput,
    ParseFailed,
    compress_document,
    compress_document_with_stats,
)
from pdf_compressor.compression import Keep


def reopen(data: bytes) -> pikepdf.Pdf:
    return pikepdf.open(io.BytesIO(data))


def test_minimal_text_pdf(minimal_pdf):
    output = compress_document(minimal_pdf, 75)
    assert len(output) > 0
    assert output.startswith(b"%PDF")
    with reopen(output) as pdf:
        assert len(pdf.pages) == 1


def test_image_pdf_is_smaller_and_valid(image_pdf):
    output, stats = compress_document_with_stats(image_pdf, 75)
    assert len(output) < len(image_pdf)
    assert stats.streams.images == 1
    with reopen(output) as pdf:
        assert len(pdf.pages) == 1
        image = pdf.pages[0].obj.Resources.XObject.Im0
        assert image.Filter == Name.DCTDecode
        assert image.Width == 200
        assert int(image.Length) == len(image.read_raw_bytes())


def test_soft_mask_stays_grayscale(smask_pdf):
    output, stats = compress_document_with_stats(smask_pdf, 75)
    assert stats.streams.images == 1
    with reopen(output) as pdf:
        image = pdf.pages[0].obj.Resources.XObject.Im0
        assert image.Filter == Name.DCTDecode
        smask = image.SMask
        assert smask.ColorSpace == Name.DeviceGray
        assert smask.get("/Filter") != Name.DCTDecode
        assert (smask.Width, smask.Height) == (200, 200)
        assert len(smask.read_bytes()) == 200 * 200


@pytest.mark.parametrize("level", [10, 25, 50, 75, 90, 95])
def test_every_level_succeeds(image_pdf, level):
    output = compress_document(image_pdf, level)
    with reopen(output) as pdf:
        assert len(pdf.pages) == 1


@pytest.mark.parametrize("level", [0, 100, 255])
def test_out_of_range_levels_are_clamped(minimal_pdf, level):
    _, stats = compress_document_with_stats(minimal_pdf, level)
    assert 10 <= stats.level <= 95


def test_corrupted_input_fails_to_parse():
    with pytest.raises(ParseFailed, match="Failed to load PDF"):
        compress_document(b"This is not a PDF, just some text.", 75)


def test_empty_input_fails():
    with pytest.raises(EmptyInput):
        compress_document(b"", 75)


def test_compressing_output_again(image_pdf):
    first = compress_document(image_pdf, 75)
    second = compress_document(first, 75)
    assert second.startswith(b"%PDF")
    with reopen(second) as pdf:
        assert len(pdf.pages) == 1


def test_no_stream_grows(image_pdf):
    _, stats = compress_document_with_stats(image_pdf, 95)
    for result in stats.streams.results:
        if not isinstance(result.outcome, Keep):
            assert len(result.outcome.payload) < result.original_size


def test_duplicates_are_found_and_merged(duplicate_pdf):
    output, stats = compress_document_with_stats(duplicate_pdf, 75)
    assert stats.duplicates >= 1
    assert stats.merged >= 1
    with reopen(output) as pdf:
        assert len(pdf.pages) == 2
        first = pdf.pages[0].obj.Contents
        second = pdf.pages[1].obj.Contents
        assert first.objgen == second.objgen


def test_metadata_is_stripped(metadata_pdf):
    output, stats = compress_document_with_stats(metadata_pdf, 75)
    assert stats.metadata_removed == 1
    with reopen(output) as pdf:
        assert "/Metadata" not in pdf.Root
        assert len(pdf.pages) == 1


def test_empty_content_streams_are_removed(empty_content_pdf):
    output = compress_document(empty_content_pdf, 75)
    with reopen(output) as pdf:
        contents = pdf.pages[0].obj.Contents
        streams = list(contents) if isinstance(contents, pikepdf.Array) else [contents]
        assert streams
        assert all(len(s.read_raw_bytes()) > 0 for s in streams)


@pytest.mark.parametrize("rounds, expected", [(0, 0), (1, 1), (2, 2), (5, 5), (50, 5)])
def test_rounds_are_configurable_and_capped(minimal_pdf, rounds, expected):
    output, stats = compress_document_with_stats(
        minimal_pdf, 75, CompressionConfig(rounds=rounds, max_workers=1)
    )
    assert stats.rounds == expected
    assert output.startswith(b"%PDF")


def test_sequential_and_parallel_agree(image_pdf):
    _, sequential = compress_document_with_stats(image_pdf, 60, CompressionConfig(max_workers=1))
    _, parallel = compress_document_with_stats(image_pdf, 60, CompressionConfig(max_workers=4))
    assert sequential.streams.compressed == parallel.streams.compressed
    assert sequential.streams.bytes_saved == parallel.streams.bytes_saved
    assert sequential.output_size == parallel.output_size


def test_stats_summary(image_pdf):
    _, stats = compress_document_with_stats(image_pdf, 75)
    assert stats.reduction_pct > 0
    assert "quality 50" in stats.summary()
