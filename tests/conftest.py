"""Shared PDF and image builders for the test suite."""

import io

import numpy as np
import pikepdf
import pytest
from PIL import Image
from pikepdf import Array, Dictionary, Name, Stream

from pdf_compressor.document import StreamSnapshot

TEXT_CONTENT = b"BT /F1 24 Tf 100 700 Td (Test PDF) Tj ET"


def gradient_rgb(width: int, height: int) -> np.ndarray:
    """Smooth RGB gradient, compresses well as JPEG."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 0] = xs[None, :].astype(np.uint8)
    image[:, :, 1] = ys[:, None].astype(np.uint8)
    image[:, :, 2] = 128
    return image


def noise_rgb(width: int, height: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def image_bytes(array: np.ndarray, fmt: str, **params) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt, **params)
    return buffer.getvalue()


def save_pdf(pdf: pikepdf.Pdf) -> bytes:
    buffer = io.BytesIO()
    pdf.save(buffer, compress_streams=False)
    return buffer.getvalue()


def add_text_page(pdf: pikepdf.Pdf, content: bytes = TEXT_CONTENT):
    pdf.add_blank_page(page_size=(612, 792))
    page = pdf.pages[-1]
    font = Dictionary({
        '/Type': Name.Font,
        '/Subtype': Name.Type1,
        '/BaseFont': Name.Helvetica,
    })
    page.obj.Resources = Dictionary({'/Font': Dictionary({'/F1': font})})
    page.obj.Contents = pdf.make_indirect(Stream(pdf, content))
    return page


def add_image_page(pdf: pikepdf.Pdf, samples: bytes, width: int, height: int,
                   colorspace=Name.DeviceRGB, **extra):
    pdf.add_blank_page(page_size=(612, 792))
    page = pdf.pages[-1]
    image_dict = Dictionary({
        '/Type': Name.XObject,
        '/Subtype': Name.Image,
        '/Width': width,
        '/Height': height,
        '/ColorSpace': colorspace,
        '/BitsPerComponent': 8,
    })
    for key, value in extra.items():
        image_dict['/' + key] = value
    image = pdf.make_indirect(Stream(pdf, samples, image_dict))
    page.obj.Resources = Dictionary({'/XObject': Dictionary({'/Im0': image})})
    page.obj.Contents = pdf.make_indirect(
        Stream(pdf, b"q 612 0 0 792 0 0 cm /Im0 Do Q")
    )
    return image


def make_snapshot(raw: bytes, **fields) -> StreamSnapshot:
    fields.setdefault("objgen", (1, 0))
    return StreamSnapshot(raw=raw, **fields)


@pytest.fixture
def minimal_pdf() -> bytes:
    pdf = pikepdf.new()
    add_text_page(pdf)
    return save_pdf(pdf)


@pytest.fixture
def image_pdf() -> bytes:
    """One page with a raw 200x200 RGB gradient image."""
    pdf = pikepdf.new()
    add_image_page(pdf, gradient_rgb(200, 200).tobytes(), 200, 200)
    return save_pdf(pdf)


@pytest.fixture
def duplicate_pdf() -> bytes:
    """Two pages whose content streams carry byte-identical payloads."""
    pdf = pikepdf.new()
    content = b"BT /F1 12 Tf 72 720 Td (Repeated line of text) Tj ET\n" * 40
    add_text_page(pdf, content)
    add_text_page(pdf, content)
    return save_pdf(pdf)


@pytest.fixture
def metadata_pdf() -> bytes:
    pdf = pikepdf.new()
    add_text_page(pdf)
    xmp = b'<?xpacket begin=""?><x:xmpmeta xmlns:x="adobe:ns:meta/"></x:xmpmeta><?xpacket end="w"?>'
    pdf.Root.Metadata = pdf.make_indirect(
        Stream(pdf, xmp, Dictionary({'/Type': Name.Metadata, '/Subtype': Name.XML}))
    )
    return save_pdf(pdf)


@pytest.fixture
def empty_content_pdf() -> bytes:
    """Page whose /Contents array holds an empty stream and a real one."""
    pdf = pikepdf.new()
    page = add_text_page(pdf)
    empty = pdf.make_indirect(Stream(pdf, b""))
    page.obj.Contents = Array([empty, page.obj.Contents])
    return save_pdf(pdf)


@pytest.fixture
def jpeg_image() -> bytes:
    return image_bytes(gradient_rgb(300, 200), "JPEG", quality=95)


@pytest.fixture
def png_image() -> bytes:
    return image_bytes(gradient_rgb(300, 200), "PNG")


@pytest.fixture
def smask_pdf() -> bytes:
    """RGB image whose transparency comes from a DeviceGray /SMask image."""
    pdf = pikepdf.new()
    alpha = np.tile(np.linspace(0, 255, 200, dtype=np.float32).astype(np.uint8), (200, 1))
    smask = pdf.make_indirect(Stream(pdf, alpha.tobytes(), Dictionary({
        '/Type': Name.XObject,
        '/Subtype': Name.Image,
        '/Width': 200,
        '/Height': 200,
        '/ColorSpace': Name.DeviceGray,
        '/BitsPerComponent': 8,
    })))
    add_image_page(pdf, gradient_rgb(200, 200).tobytes(), 200, 200, SMask=smask)
    return save_pdf(pdf)
