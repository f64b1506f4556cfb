import pytest

from agent.errors import InputClassificationError
from agent.media import (
    BINARY_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    TEXT_MEDIA_TYPE,
    ImageDimensions,
    classify_image,
    decode_image,
    detect_mime,
    extract_pdfs,
    is_image,
    split_pdf_segments,
    validate_image,
    validate_pdf,
)

from conftest import make_image, make_pdf


def test_detect_mime(png_bytes, pdf_bytes):
    assert detect_mime(png_bytes) == "image/png"
    assert detect_mime(make_image(fmt="JPEG")) == "image/jpeg"
    assert detect_mime(make_image(fmt="GIF")) == "image/gif"
    assert detect_mime(make_image(fmt="WEBP")) == "image/webp"
    assert detect_mime(pdf_bytes) == PDF_MEDIA_TYPE
    assert detect_mime(b"hello world") == TEXT_MEDIA_TYPE
    assert detect_mime(b"\x00\x01\x02 data") == BINARY_MEDIA_TYPE
    assert is_image(png_bytes)
    assert not is_image(b"plain text")


def test_decode_image(png_bytes):
    dimensions, image_format = decode_image(png_bytes)
    assert dimensions == ImageDimensions(4, 4)
    assert image_format == "PNG"


def test_decode_corrupt_image():
    with pytest.raises(InputClassificationError):
        decode_image(b"\x89PNG\r\n\x1a\n" + b"not really a png")


def test_validate_image_limits():
    assert validate_image(ImageDimensions(8000, 8000)) == (True, None)
    is_valid, reason = validate_image(ImageDimensions(8001, 10), "PNG")
    assert not is_valid
    assert "8001 x 10" in reason


def test_classify_image(png_bytes):
    assert classify_image(png_bytes) == "image/png"


def test_classify_unsupported_type():
    with pytest.raises(InputClassificationError) as exc_info:
        classify_image(make_image(fmt="BMP"))
    assert "image/bmp" in exc_info.value.detail


def test_classify_oversize_image():
    with pytest.raises(InputClassificationError) as exc_info:
        classify_image(make_image(size=(8001, 1)))
    assert "8001 x 1" in exc_info.value.detail


def test_split_uses_last_eof_before_next_pdf():
    data = b"head %PDF-1 a %%EOF b %%EOF mid %PDF-2 c %%EOF tail"
    assert split_pdf_segments(data) == [
        (False, b"head "),
        (True, b"%PDF-1 a %%EOF b %%EOF"),
        (False, b" mid "),
        (True, b"%PDF-2 c %%EOF"),
        (False, b" tail"),
    ]


def test_unterminated_pdf_stays_text():
    data = b"text %PDF-1.4 never ends"
    assert extract_pdfs(data) == ([], data)


@pytest.mark.parametrize("data", [
    b"",
    b"no documents at all",
    make_pdf(),
    b"a" + make_pdf() + b"b" + make_pdf() + b"c",
    b"%PDF- %PDF- %%EOF %%EOF",
    b"%PD" + b"%PDF-1 %%EOF" + b"F-a %%E" + b"%PDF-2 %%EOF" + b"OF",
])
def test_extract_keeps_every_byte(data):
    pdfs, leftover = extract_pdfs(data)
    assert sorted(b"".join(pdfs) + leftover) == sorted(data)
    assert len(b"".join(pdfs)) + len(leftover) == len(data)
    assert extract_pdfs(leftover)[0] == []


def test_validate_pdf(pdf_bytes):
    assert validate_pdf(pdf_bytes) == (True, None)


@pytest.mark.parametrize("data", [
    b"hello",
    b"%PDF-1.4\nhello\n%%EOF",
    b"%PDF-1.4\nhello\nstartxref\n9999\n%%EOF",
    b"%PDF-1.4\nhello\nstartxref\n3\n%%EOF",
    b"%PDF-1.4\nxref\ngarbage\ntrailer\nstartxref\n9\n%%EOF",
    b"%PDF-1.4\nxref\n0 1\n0000000000 65535 f \ntrailer\n<< /Size 1 >>\nstartxref\n9\n%%EOF",
])
def test_validate_pdf_rejects_broken_documents(data):
    is_valid, reason = validate_pdf(data)
    assert not is_valid
    assert reason
