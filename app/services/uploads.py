from __future__ import annotations

from pathlib import Path

from fastapi import UploadFile

from app.services.university_records import UploadedFile

ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

# Magic byte signatures for known binary file types.
# Used to cross-check that uploaded file content matches the claimed extension.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    ".png": [b"\x89PNG\r\n\x1a\n"],
    ".jpg": [b"\xff\xd8\xff"],
    ".jpeg": [b"\xff\xd8\xff"],
    ".gif": [b"GIF87a", b"GIF89a"],
    ".webp": [b"RIFF"],
}

# Extensions whose content can execute scripts when rendered in a browser.
_DANGEROUS_EXTENSIONS = {".html", ".htm", ".svg", ".xhtml", ".js", ".mjs", ".xml"}

_CHUNK_SIZE = 1024 * 1024


class InvalidUpload(ValueError):
    pass


def _validate_content_type(header_bytes: bytes, ext: str) -> None:
    """Validate that file content matches claimed extension via magic bytes.

    Raises InvalidUpload if the content does not match or the extension is dangerous.
    """
    if ext in _DANGEROUS_EXTENSIONS:
        raise InvalidUpload(
            f"File type '{ext}' is not allowed because it may contain executable content"
        )
    signatures = _MAGIC_SIGNATURES.get(ext)
    if signatures is None:
        return
    if not any(header_bytes.startswith(sig) for sig in signatures):
        raise InvalidUpload(f"File content does not match the expected format for '{ext}'")


def _safe_filename(filename: str | None, fallback: str) -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


def check_extension(filename: str, allowed_extensions: set[str]) -> str:
    ext = Path(filename).suffix.lower()
    # Normalize allowed extensions to lowercase and ensure dot prefix
    normalized_allowed = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in allowed_extensions}
    if ".jpeg" in normalized_allowed:
        normalized_allowed.add(".jpg")
    if ".jpg" in normalized_allowed:
        normalized_allowed.add(".jpeg")
    if ext not in normalized_allowed:
        raise InvalidUpload(
            f"File type not allowed. Allowed extensions: {', '.join(sorted(normalized_allowed))}"
        )
    return ext


async def buffer_upload(
    file: UploadFile,
    *,
    allowed_extensions: set[str] | None = None,
    max_size_bytes: int = 0,
) -> UploadedFile:
    """Read an upload fully into memory and close it.

    The upload stream is closed on every path so no temporary copy outlives
    the call.
    """
    try:
        filename = _safe_filename(file.filename, "upload.bin")
        ext = Path(filename).suffix.lower()
        if allowed_extensions:
            check_extension(filename, allowed_extensions)

        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = await file.read(_CHUNK_SIZE)
            if not chunk:
                break
            if not chunks:
                _validate_content_type(chunk, ext)
            total += len(chunk)
            if max_size_bytes and total > max_size_bytes:
                raise InvalidUpload(
                    f"File exceeds maximum allowed size of {max_size_bytes // (1024 * 1024)} MB"
                )
            chunks.append(chunk)
    finally:
        await file.close()

    if total == 0:
        raise InvalidUpload(f"Uploaded file '{filename}' is empty")
    return UploadedFile(filename=filename, content=b"".join(chunks), content_type=file.content_type)


async def buffer_images(
    files: list[UploadFile] | None,
    *,
    max_size_bytes: int,
    max_count: int | None = None,
) -> list[UploadedFile]:
    files = [f for f in (files or []) if f is not None and f.filename]
    if max_count is not None and len(files) > max_count:
        for extra in files:
            await extra.close()
        raise InvalidUpload(f"At most {max_count} images may be uploaded at once")
    buffered = []
    try:
        for index, upload in enumerate(files):
            buffered.append(
                await buffer_upload(
                    upload,
                    allowed_extensions=ALLOWED_IMAGE_EXTENSIONS,
                    max_size_bytes=max_size_bytes,
                )
            )
    except InvalidUpload:
        for remaining in files[index + 1 :]:
            await remaining.close()
        raise
    return buffered
