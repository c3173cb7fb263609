# Overview: Document store for case documents and payment proofs; validates uploads and writes them under UPLOAD_FOLDER.

"""
Local Document Store

Accepts a werkzeug FileStorage, validates it, writes it under
UPLOAD_FOLDER with a collision-free name and returns the metadata callers
persist ({url, storedName, ...}). Callers never see filesystem paths.

VALIDATION (all must pass):
- extension in ALLOWED_EXTENSIONS
- declared MIME type in ALLOWED_MIME_TYPES
- content sniffed from magic numbers agrees with an allowed type
- size > 0 and <= MAX_UPLOAD_BYTES
"""

import os
import secrets
from dataclasses import dataclass

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import ValidationError
from rahmah.time_utils import utcnow


ALLOWED_EXTENSIONS = {"pdf", "jpg", "jpeg", "png", "gif", "webp"}
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
}
DOCUMENT_URL_PREFIX = "/api/documents/"


@dataclass
class StoredFile:
    stored_name: str
    original_name: str
    mime_type: str
    size: int
    url: str


def sniff_mime_type(data: bytes) -> str | None:
    """Detect the real file type from magic numbers; None when unrecognized."""
    if data[:4] == b"%PDF":
        return "application/pdf"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


MIME_BY_EXTENSION = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def mime_type_for(stored_name: str) -> str:
    return MIME_BY_EXTENSION.get(_extension(stored_name), "application/octet-stream")


def validate_upload(filename: str, declared_mime: str | None, data: bytes) -> str:
    """
    Validate one upload and return its canonical MIME type.

    Raises ValidationError with a user-facing reason.
    """
    if not filename:
        raise ValidationError("File name is required")

    if _extension(filename) not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"{filename}: file type not allowed (allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))})"
        )

    declared = (declared_mime or "").split(";")[0].strip().lower()
    if declared and declared != "application/octet-stream" and declared not in ALLOWED_MIME_TYPES:
        raise ValidationError(f"{filename}: MIME type {declared} not allowed")

    size = len(data)
    if size == 0:
        raise ValidationError(f"{filename}: file is empty")
    max_bytes = current_app.config.get("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
    if size > max_bytes:
        raise ValidationError(f"{filename}: file exceeds {max_bytes // (1024 * 1024)}MB limit")

    detected = sniff_mime_type(data)
    if detected is None:
        raise ValidationError(f"{filename}: file content does not match an allowed type")

    return detected


def upload_root() -> str:
    root = current_app.config.get("UPLOAD_FOLDER") or os.path.join("instance", "uploads")
    if not os.path.isabs(root):
        root = os.path.join(current_app.root_path, "..", root)
    return os.path.abspath(root)


def store_upload(upload: FileStorage, prefix: str = "doc") -> StoredFile:
    """Validate and persist one uploaded file."""
    original_name = upload.filename or ""
    data = upload.read()
    mime_type = validate_upload(original_name, upload.mimetype, data)

    safe_name = secure_filename(original_name) or f"upload.{_extension(original_name)}"
    stamp = utcnow().strftime("%Y%m%d%H%M%S")
    stored_name = f"{prefix}-{stamp}-{secrets.token_hex(6)}-{safe_name}"

    root = upload_root()
    os.makedirs(root, exist_ok=True)
    with open(os.path.join(root, stored_name), "wb") as fh:
        fh.write(data)

    return StoredFile(
        stored_name=stored_name,
        original_name=original_name,
        mime_type=mime_type,
        size=len(data),
        url=f"{DOCUMENT_URL_PREFIX}{stored_name}",
    )


def store_uploads(uploads) -> tuple[list[StoredFile], list[str]]:
    """
    Store a batch; invalid files are skipped.

    Returns (stored, errors) where errors are user-facing strings.
    """
    stored: list[StoredFile] = []
    errors: list[str] = []
    for upload in uploads:
        if not upload or not upload.filename:
            continue
        try:
            stored.append(store_upload(upload))
        except ValidationError as e:
            errors.append(str(e))
    return stored, errors


def delete_stored(stored_name: str) -> bool:
    """Remove a stored file; a missing file is not an error."""
    path = os.path.join(upload_root(), secure_filename(stored_name))
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError:
        current_app.logger.warning("Failed to remove stored file %s", stored_name)
        return False
    return True
