from schemas.batch import (
    BatchDecision,
    BatchRejection,
    DecisionResult,
    UploadSummary,
)
from schemas.records import (
    CandidateRecord,
    ContributionCandidate,
    LoanCandidate,
    TransactionCandidate,
    ValidationOutcome,
)

__all__ = [
    "BatchDecision",
    "BatchRejection",
    "DecisionResult",
    "UploadSummary",
    "CandidateRecord",
    "LoanCandidate",
    "ContributionCandidate",
    "TransactionCandidate",
    "ValidationOutcome",
]
