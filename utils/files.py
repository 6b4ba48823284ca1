from core.errors import InvalidInput
from models.zone_file import FileKind


ACCEPTED_MIME_TYPES = {
    FileKind.IMAGE: ("image/jpeg", "image/png", "image/gif", "image/webp"),
    FileKind.VIDEO: ("video/mp4", "video/quicktime", "video/x-msvideo", "video/webm"),
    FileKind.AUDIO: ("audio/mpeg", "audio/wav", "audio/mp4", "audio/x-m4a"),
    FileKind.DOCUMENT: (
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
    ),
}


def file_kind_for(mime_type: str) -> FileKind:
    """Map a mime type onto the closed set of file kinds."""
    major = (mime_type or "").split("/", 1)[0].strip().lower()
    if major == "image":
        return FileKind.IMAGE
    if major == "video":
        return FileKind.VIDEO
    if major == "audio":
        return FileKind.AUDIO
    return FileKind.DOCUMENT


def validate_file_metadata(name: str, mime_type: str, size_bytes: int, max_bytes: int) -> FileKind:
    if not name or not name.strip():
        raise InvalidInput("File name is required.")
    if not mime_type or "/" not in mime_type:
        raise InvalidInput(f"Invalid mime type for '{name}'.")
    if size_bytes < 0:
        raise InvalidInput(f"File size for '{name}' cannot be negative.")
    if size_bytes > max_bytes:
        raise InvalidInput(
            f"File '{name}' exceeds {max_bytes // (1024 * 1024)}MB limit."
        )

    kind = file_kind_for(mime_type)
    if mime_type.lower() not in ACCEPTED_MIME_TYPES[kind]:
        raise InvalidInput(
            f"Invalid file type {mime_type}. Allowed types: "
            f"{', '.join(t for types in ACCEPTED_MIME_TYPES.values() for t in types)}"
        )
    return kind
