from io import BytesIO

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from app.services.uploads import (
    ALLOWED_IMAGE_EXTENSIONS,
    InvalidUpload,
    buffer_images,
    buffer_upload,
    check_extension,
)
from conftest import JPEG_BYTES, PNG_BYTES


def upload(filename: str, content: bytes, content_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def test_check_extension_normalizes_jpeg_variants():
    assert check_extension("Photo.JPG", {"jpeg"}) == ".jpg"
    with pytest.raises(InvalidUpload):
        check_extension("notes.txt", ALLOWED_IMAGE_EXTENSIONS)


@pytest.mark.asyncio
async def test_buffer_upload_reads_and_closes():
    file = upload("../../crest.png", PNG_BYTES)

    buffered = await buffer_upload(file, allowed_extensions=ALLOWED_IMAGE_EXTENSIONS, max_size_bytes=1024)

    assert buffered.filename == "crest.png"
    assert buffered.content == PNG_BYTES
    assert buffered.content_type == "image/png"
    assert file.file.closed


@pytest.mark.asyncio
async def test_buffer_upload_rejects_mismatched_content():
    file = upload("crest.png", JPEG_BYTES)

    with pytest.raises(InvalidUpload, match="does not match"):
        await buffer_upload(file, allowed_extensions=ALLOWED_IMAGE_EXTENSIONS)
    assert file.file.closed


@pytest.mark.asyncio
async def test_buffer_upload_rejects_oversized_file():
    file = upload("crest.png", PNG_BYTES + b"\x00" * 2048)

    with pytest.raises(InvalidUpload, match="maximum allowed size"):
        await buffer_upload(file, allowed_extensions=ALLOWED_IMAGE_EXTENSIONS, max_size_bytes=1024)
    assert file.file.closed


@pytest.mark.asyncio
async def test_buffer_upload_rejects_empty_file():
    with pytest.raises(InvalidUpload, match="empty"):
        await buffer_upload(upload("crest.png", b""), allowed_extensions=ALLOWED_IMAGE_EXTENSIONS)


@pytest.mark.asyncio
async def test_buffer_upload_rejects_script_content():
    with pytest.raises(InvalidUpload):
        await buffer_upload(upload("crest.svg", b"<svg/>", "image/svg+xml"))


@pytest.mark.asyncio
async def test_buffer_images_keeps_order_and_skips_blank_parts():
    files = [upload("a.png", PNG_BYTES), upload("", b""), upload("b.jpg", JPEG_BYTES, "image/jpeg")]

    buffered = await buffer_images(files, max_size_bytes=1024, max_count=5)

    assert [f.filename for f in buffered] == ["a.png", "b.jpg"]


@pytest.mark.asyncio
async def test_buffer_images_enforces_count():
    files = [upload(f"{i}.png", PNG_BYTES) for i in range(3)]

    with pytest.raises(InvalidUpload, match="At most 2"):
        await buffer_images(files, max_size_bytes=1024, max_count=2)
    assert all(f.file.closed for f in files)


@pytest.mark.asyncio
async def test_buffer_images_closes_remaining_after_bad_file():
    files = [upload("a.png", PNG_BYTES), upload("b.png", b"not an image"), upload("c.png", PNG_BYTES)]

    with pytest.raises(InvalidUpload):
        await buffer_images(files, max_size_bytes=1024)
    assert all(f.file.closed for f in files)


@pytest.mark.asyncio
async def test_buffer_images_none():
    assert await buffer_images(None, max_size_bytes=1024) == []
