"""
Errors that abort a whole upload or batch decision.

Row-level defects are never raised; they travel as validation messages on the
staged row. Everything here is an input-shape or state-conflict failure and is
rendered by main.py as a structured 4xx response.
"""
from __future__ import annotations

from typing import Any


class BatchIngestionError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__

    def extra(self) -> dict[str, Any]:
        return {}


class NoFileProvided(BatchIngestionError):
    def __init__(self) -> None:
        super().__init__("No file provided")


class UploadTooLarge(BatchIngestionError):
    status_code = 413

    def __init__(self, limit: int) -> None:
        super().__init__(f"File exceeds the upload limit of {limit} bytes")
        self.limit = limit


class UnreadableFile(BatchIngestionError):
    pass


class EmptySheet(BatchIngestionError):
    pass


class MissingHeaders(BatchIngestionError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing expected headers: {', '.join(missing)}")
        self.missing = missing

    def extra(self) -> dict[str, Any]:
        return {"missingHeaders": self.missing}


class BatchNotFound(BatchIngestionError):
    def __init__(self, batch_id: str | None) -> None:
        if batch_id:
            message = f"Batch {batch_id} not found"
        else:
            message = "Batch ID is required"
        super().__init__(message)
        self.batch_id = batch_id


class InvalidBatchState(BatchIngestionError):
    def __init__(self, batch_id: str, status: str, action: str) -> None:
        super().__init__(f"Batch {batch_id} cannot be {action} with status: {status}")
        self.batch_id = batch_id
        self.status = status

    def extra(self) -> dict[str, Any]:
        return {"batchStatus": self.status}


class BatchNotApprovable(BatchIngestionError):
    def __init__(self, batch_id: str, invalid_records: int) -> None:
        super().__init__(
            f"Batch {batch_id} has {invalid_records} invalid record(s); "
            "correct the file and upload it again"
        )
        self.batch_id = batch_id
        self.invalid_records = invalid_records

    def extra(self) -> dict[str, Any]:
        return {"invalidRecords": self.invalid_records}


class RejectionReasonRequired(BatchIngestionError):
    def __init__(self) -> None:
        super().__init__("A rejection reason is required")


class UnknownTransactionType(BatchIngestionError):
    def __init__(self, names: list[str]) -> None:
        super().__init__(f"Transaction type(s) not found: {', '.join(names)}")
        self.names = names

    def extra(self) -> dict[str, Any]:
        return {"unknownTypes": self.names}
