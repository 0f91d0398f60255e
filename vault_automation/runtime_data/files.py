"""File attachment descriptors passed between nodes as variable values."""

import base64
import mimetypes
import posixpath
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .values import try_parse_json

BINARY_EXTENSIONS = {
    # Images
    "pdf", "png", "jpg", "jpeg", "gif", "webp", "bmp", "ico", "svg", "tiff", "tif",
    # Video
    "mp4", "mov", "avi", "mkv", "webm", "wmv", "flv", "m4v",
    # Audio
    "mp3", "wav", "ogg", "flac", "aac", "m4a", "wma",
    # Archives
    "zip", "rar", "7z", "tar", "gz", "bz2",
    # Office documents
    "docx", "xlsx", "pptx", "doc", "xls", "ppt", "odt", "ods", "odp",
    # Other binary
    "exe", "dll", "so", "dylib", "wasm", "ttf", "otf", "woff", "woff2", "eot",
}

_EXTRA_TYPES = {
    "md": "text/markdown",
    "yaml": "application/x-yaml",
    "yml": "application/x-yaml",
    "ts": "application/typescript",
}

_TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "application/x-yaml",
    "application/typescript",
}


def split_path(path: str) -> Dict[str, str]:
    """Describe a vault path as ``{path, basename, name, extension}``."""
    basename = posixpath.basename(path)
    name, dot, extension = basename.rpartition(".")
    if not dot or not name:
        name, extension = basename, ""
    return {"path": path, "basename": basename, "name": name, "extension": extension}


def is_binary_extension(extension: str) -> bool:
    return extension.lower() in BINARY_EXTENSIONS


def mime_type_for_extension(extension: str) -> str:
    extension = extension.lower()
    if extension in _EXTRA_TYPES:
        return _EXTRA_TYPES[extension]
    guessed, _ = mimetypes.guess_type(f"file.{extension}")
    return guessed or "application/octet-stream"


def is_binary_mime_type(mime_type: str) -> bool:
    """Classify a response content type. Unknown types count as text."""
    mime_type = mime_type.split(";")[0].strip().lower()
    if mime_type.startswith("text/") or mime_type in _TEXT_APPLICATION_TYPES:
        return False
    if mime_type.endswith("+xml") or mime_type.endswith("+json"):
        return False
    if mime_type.startswith(("image/", "audio/", "video/")):
        return True
    return mime_type in {
        "application/pdf",
        "application/zip",
        "application/x-zip-compressed",
        "application/octet-stream",
        "application/gzip",
        "application/x-tar",
    }


def extension_for_mime_type(mime_type: str) -> str:
    mime_type = mime_type.split(";")[0].strip().lower()
    if mime_type == "image/jpeg":
        return "jpg"
    if mime_type == "application/octet-stream":
        return "bin"
    guessed = mimetypes.guess_extension(mime_type)
    return guessed.lstrip(".") if guessed else ""


@dataclass
class FileData:
    """
    A file carried in a variable.

    Binary contents are base64 encoded in ``data``; text contents are kept
    as-is. Handlers store the ``to_dict()`` form so templates can reach
    fields such as ``{{file.basename}}``.
    """

    path: str
    basename: str
    name: str
    extension: str
    mime_type: str
    content_type: str
    data: str

    @property
    def is_binary(self) -> bool:
        return self.content_type == "binary"

    def raw_bytes(self) -> bytes:
        if self.is_binary:
            return base64.b64decode(self.data)
        return self.data.encode("utf-8")

    @classmethod
    def from_text(cls, path: str, text: str, mime_type: Optional[str] = None) -> "FileData":
        parts = split_path(path)
        return cls(
            mime_type=mime_type or mime_type_for_extension(parts["extension"]),
            content_type="text",
            data=text,
            **parts,
        )

    @classmethod
    def from_bytes(cls, path: str, data: bytes, mime_type: Optional[str] = None) -> "FileData":
        parts = split_path(path)
        return cls(
            mime_type=mime_type or mime_type_for_extension(parts["extension"]),
            content_type="binary",
            data=base64.b64encode(data).decode("ascii"),
            **parts,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the variable form (camelCase keys)."""
        result = asdict(self)
        result["mimeType"] = result.pop("mime_type")
        result["contentType"] = result.pop("content_type")
        return result

    @classmethod
    def from_value(cls, value: Any) -> Optional["FileData"]:
        """Read a descriptor from a variable value (dict or JSON text)."""
        if isinstance(value, FileData):
            return value
        if isinstance(value, str):
            value = try_parse_json(value)
        if not isinstance(value, dict) or "data" not in value:
            return None
        path = value.get("path", "")
        parts = split_path(path)
        return cls(
            path=path,
            basename=value.get("basename", parts["basename"]),
            name=value.get("name", parts["name"]),
            extension=value.get("extension", parts["extension"]),
            mime_type=value.get("mimeType", "application/octet-stream"),
            content_type=value.get("contentType", "text"),
            data=value.get("data", ""),
        )
