from models.batch import BatchStatus, UploadBatch
from models.ledger import Contribution, Loan, MemberBalance, Transaction, TransactionType
from models.staged import StagedContribution, StagedLoan, StagedTransaction

__all__ = [
    "BatchStatus",
    "UploadBatch",
    "StagedLoan",
    "StagedContribution",
    "StagedTransaction",
    "TransactionType",
    "Loan",
    "Contribution",
    "Transaction",
    "MemberBalance",
]
