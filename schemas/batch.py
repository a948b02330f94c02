from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

BatchStatusLiteral = Literal["Pending", "PendingValidation", "Validated", "Approved", "Rejected"]


class BatchDecision(BaseModel):
    # Optional so a missing id surfaces as a 400, not a body validation error
    batch_id: Optional[str] = Field(None, alias="batchId")

    model_config = {"populate_by_name": True}

    @field_validator("batch_id", mode="before")
    @classmethod
    def numeric_id_as_text(cls, value):
        # Clients that build the body from a number still reach the batch lookup
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class BatchRejection(BatchDecision):
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")


class UploadSummary(BaseModel):
    batch_id: str = Field(..., alias="batchId")
    message: str
    total: int
    valid: int
    invalid: int
    status: BatchStatusLiteral

    model_config = {"populate_by_name": True}


class DecisionResult(BaseModel):
    batch_id: str = Field(..., alias="batchId")
    status: BatchStatusLiteral
    message: str
    records_processed: int = Field(0, alias="recordsProcessed")

    model_config = {"populate_by_name": True}

