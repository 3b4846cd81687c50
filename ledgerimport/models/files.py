"""In-memory spreadsheet file handed to staging and upload calls."""

from dataclasses import dataclass
from pathlib import Path

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_CONTENT_TYPE = "application/vnd.ms-excel"
CSV_CONTENT_TYPE = "text/csv"

CONTENT_TYPES = {
    "xlsx": XLSX_CONTENT_TYPE,
    "xlsm": XLSX_CONTENT_TYPE,
    "xls": XLS_CONTENT_TYPE,
    "csv": CSV_CONTENT_TYPE,
}


@dataclass(frozen=True)
class SpreadsheetFile:
    """A spreadsheet's name and raw bytes."""

    filename: str
    content: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "SpreadsheetFile":
        path = Path(path)
        return cls(filename=path.name, content=path.read_bytes())

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES.get(self.extension, "application/octet-stream")

    def as_upload(self) -> tuple[str, bytes, str]:
        """Tuple in the shape httpx expects for a multipart file part."""
        return (self.filename, self.content, self.content_type)
