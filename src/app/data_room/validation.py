"""Upload validation for data room documents.

Checks size, extension, MIME type, executable and reserved names, and
scans small text files for script injection patterns. Two sanitizers are
provided: a permissive one for the stored display name and a strict one
for storage object keys.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_FILENAME_LENGTH = 255
CONTENT_SCAN_MAX_BYTES = 1024 * 1024
UPLOAD_CHUNK_BYTES = 1024 * 1024

ALLOWED_EXTENSIONS: frozenset[str] = frozenset({
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".png", ".jpg", ".jpeg", ".gif", ".txt", ".csv",
})

ALLOWED_MIME_TYPES: frozenset[str] = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "image/png",
    "image/jpeg",
    "image/gif",
    "text/plain",
    "text/csv",
})

EXECUTABLE_EXTENSIONS: frozenset[str] = frozenset({
    ".exe", ".bat", ".cmd", ".scr", ".pif", ".com", ".vbs", ".js", ".jar", ".app", ".dmg",
})

RESERVED_NAMES: frozenset[str] = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

DANGEROUS_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"<script[\s\S]*?>[\s\S]*?</script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"onload=", re.IGNORECASE),
    re.compile(r"onerror=", re.IGNORECASE),
    re.compile(r"onclick=", re.IGNORECASE),
    re.compile(r"<iframe[\s\S]*?>", re.IGNORECASE),
    re.compile(r"<object[\s\S]*?>", re.IGNORECASE),
    re.compile(r"<embed[\s\S]*?>", re.IGNORECASE),
]


class FileValidationError(ValueError):
    """Raised when an upload is rejected."""


class MaliciousContentError(FileValidationError):
    """Raised when a text upload matches a dangerous pattern."""

    def __init__(self, message: str, pattern: str) -> None:
        super().__init__(message)
        self.pattern = pattern


@dataclass
class ValidatedFile:
    sanitized_name: str
    extension: str
    mime_type: str
    size: int


def file_extension(file_name: str) -> str:
    """Lowercased last extension with its dot ("" when there is none)."""
    if "." not in file_name:
        return ""
    return "." + file_name.rsplit(".", 1)[1].lower()


def sanitize_filename(file_name: str) -> str:
    """Display-safe name: replaces Windows-forbidden characters and traversal."""
    name = re.sub(r'[<>:"|?*]', "_", file_name)
    name = name.replace("..", "_")
    name = re.sub(r"^\.", "_", name)
    return name.strip()


def storage_safe_name(file_name: str) -> str:
    """Object-key-safe name: anything but letters, digits, dot and dash becomes _."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", file_name)


def scan_content(content: bytes) -> str | None:
    """Return the first dangerous pattern found in content, if any."""
    text = content.decode("utf-8", errors="ignore")
    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(text):
            return pattern.pattern
    return None


def _size_message(max_size: int) -> str:
    return f"File size exceeds maximum limit of {max_size // (1024 * 1024)}MB"


async def read_upload_bytes(upload, max_size: int = MAX_FILE_SIZE) -> bytes:
    """Read an UploadFile in 1 MiB chunks, stopping as soon as it passes max_size.

    Raises:
        FileValidationError: The upload is larger than max_size.
    """
    buf = bytearray()
    while True:
        chunk = await upload.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_size:
            raise FileValidationError(_size_message(max_size))
    return bytes(buf)


def validate_upload(
    file_name: str,
    mime_type: str | None,
    content: bytes,
    max_size: int = MAX_FILE_SIZE,
) -> ValidatedFile:
    """Validate an upload and return its sanitized metadata.

    Raises:
        FileValidationError: On any rule violation.
        MaliciousContentError: When a small text file carries script content.
    """
    size = len(content)
    if size > max_size:
        raise FileValidationError(_size_message(max_size))

    extension = file_extension(file_name)
    if extension in EXECUTABLE_EXTENSIONS:
        raise FileValidationError("Executable file types are not allowed")
    if extension not in ALLOWED_EXTENSIONS:
        raise FileValidationError(
            f"File type not allowed. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime not in ALLOWED_MIME_TYPES:
        raise FileValidationError("Invalid file type detected")

    sanitized = sanitize_filename(file_name)
    if len(sanitized) > MAX_FILENAME_LENGTH:
        raise FileValidationError(
            f"Filename is too long. Maximum {MAX_FILENAME_LENGTH} characters allowed."
        )
    if sanitized.split(".")[0].upper() in RESERVED_NAMES:
        raise FileValidationError("Filename uses a reserved system name")

    if mime.startswith("text/") and size < CONTENT_SCAN_MAX_BYTES:
        pattern = scan_content(content)
        if pattern is not None:
            raise MaliciousContentError("File contains potentially malicious content", pattern)

    return ValidatedFile(sanitized_name=sanitized, extension=extension, mime_type=mime, size=size)
