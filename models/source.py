from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

_URL_DISPLAY_NAME = "Website Content"
_TEXT_DISPLAY_NAME = "Pasted Text"


class SourcePayload(BaseModel):
    """One user-supplied source, submitted to the backend as a multipart form.

    Exactly one of the file, url or text fields is populated, matching `kind`.
    Use the `from_*` constructors rather than building instances by hand.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["file", "url", "text"]
    file_name: str | None = None
    file_bytes: bytes | None = None
    content_type: str | None = None
    url: str | None = None
    text: str | None = None

    @model_validator(mode="after")
    def check_fields_match_kind(self) -> "SourcePayload":
        populated = {
            name for name in ("file_bytes", "url", "text")
            if getattr(self, name) is not None
        }
        expected = {"file": "file_bytes", "url": "url", "text": "text"}[self.kind]
        if populated != {expected}:
            raise ValueError(f"a {self.kind} source must set only {expected}")
        if self.kind == "file" and not self.file_name:
            raise ValueError("a file source needs a file name")
        return self

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_path(cls, path: Path) -> "SourcePayload":
        data = path.read_bytes()
        return cls.from_bytes(path.name, data)

    @classmethod
    def from_bytes(cls, file_name: str, data: bytes) -> "SourcePayload":
        return cls(
            kind="file",
            file_name=file_name,
            file_bytes=data,
            content_type=_detect_mime(data),
        )

    @classmethod
    def from_url(cls, url: str) -> "SourcePayload":
        url = url.strip()
        if not url:
            raise ValueError("URL must not be empty")
        return cls(kind="url", url=url)

    @classmethod
    def from_text(cls, text: str) -> "SourcePayload":
        text = text.strip()
        if not text:
            raise ValueError("text must not be empty")
        return cls(kind="text", text=text)

    # ------------------------------------------------------------------
    # Presentation and wire form
    # ------------------------------------------------------------------

    @property
    def display_name(self) -> str:
        if self.kind == "file":
            return self.file_name
        return _URL_DISPLAY_NAME if self.kind == "url" else _TEXT_DISPLAY_NAME

    @property
    def document_type(self) -> str:
        """Short label used in status lines, e.g. "PDF" for report.pdf."""
        if self.kind == "url":
            return "Website"
        if self.kind == "text":
            return "Text"
        suffix = Path(self.file_name).suffix.lstrip(".")
        return suffix.upper() or "Document"

    def multipart_files(self) -> dict[str, tuple]:
        """Form fields in the shape httpx expects for `files=`.

        Plain fields use a `None` filename so the body is always
        multipart/form-data, whichever kind of source is sent.
        """
        if self.kind == "file":
            return {"file": (self.file_name, self.file_bytes, self.content_type)}
        if self.kind == "url":
            return {"url": (None, self.url.encode("utf-8"))}
        return {"text": (None, self.text.encode("utf-8"))}


def _detect_mime(data: bytes) -> str:
    """Detect MIME type from magic bytes."""
    if data[:5] == b"%PDF-":
        return "application/pdf"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"PK\x03\x04":
        return "application/zip"  # also docx / pptx / xlsx containers
    return "application/octet-stream"
