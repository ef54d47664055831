"""Failures raised by the ingestion pipeline.

Only UnsupportedFormatError reaches callers of the coordinator as a
classification problem. MalformedRecordError never leaves the Apple Health
parser: it is caught per workout so one corrupt entry cannot abort an export.
"""


class IngestError(Exception):
    pass


class UnsupportedFormatError(IngestError):
    def __init__(self, extension: str | None):
        self.extension = extension or ""
        super().__init__(f"Unsupported file format: {self.extension}")


class MalformedRecordError(IngestError):
    pass


class InvalidFileError(IngestError):
    """The file matched a format but could not be read as that format."""

    def __init__(self, file_format: str, reason: str):
        self.file_format = file_format
        super().__init__(f"Could not read {file_format} file: {reason}")
