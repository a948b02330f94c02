"""
Batch decisions: approval gating, promotion into the ledger, balance updates,
rejection, and refusal to touch a batch that already has a decision.
Run: python -m pytest tests/test_approval.py -v
"""
import unittest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import func, select

from db_case import CONTRIBUTION_HEADERS, LOAN_HEADERS, TRANSACTION_HEADERS, DatabaseTestCase, loan_row, xlsx_bytes
from models import (
    Contribution,
    Loan,
    MemberBalance,
    StagedLoan,
    Transaction,
    TransactionType,
    UploadBatch,
)
from services import approval
from services.approval import approve_batch, reject_batch
from services.errors import (
    BatchNotApprovable,
    BatchNotFound,
    InvalidBatchState,
    RejectionReasonRequired,
    UnknownTransactionType,
)
from services.pending import get_batch, list_pending_records
from services.record_kinds import RECORD_KINDS
from services.staging import stage_upload

LOANS = RECORD_KINDS["loans"]
CONTRIBUTIONS = RECORD_KINDS["contributions"]
TRANSACTIONS = RECORD_KINDS["transactions"]


class DecisionTestCase(DatabaseTestCase):
    async def stage(self, kind, rows, file_name="upload.xlsx"):
        async with self.sessionmaker() as session:
            return await stage_upload(session, kind, xlsx_bytes(rows), file_name, uploaded_by="uploader")

    async def approve(self, kind, batch_id, operator="approver"):
        async with self.sessionmaker() as session:
            return await approve_batch(session, kind, batch_id, approved_by=operator)

    async def reject(self, kind, batch_id, reason, operator="approver"):
        async with self.sessionmaker() as session:
            return await reject_batch(session, kind, batch_id, reason, rejected_by=operator)

    async def load_batch(self, batch_id):
        async with self.sessionmaker() as session:
            return await get_batch(session, batch_id)

    async def count(self, model):
        async with self.sessionmaker() as session:
            return await session.scalar(select(func.count()).select_from(model))

    async def balance(self, reg_no, type_name):
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(MemberBalance.current_balance)
                .join(TransactionType, TransactionType.id == MemberBalance.transaction_type_id)
                .where(MemberBalance.reg_no == reg_no, TransactionType.type_name == type_name)
            )
            return result.scalar_one_or_none()


class TestApproveLoans(DecisionTestCase):
    async def test_validated_batch_promotes_every_row(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row(), loan_row(ref_no=None, reg_no="REG002")])

        outcome = await self.approve(LOANS, batch.batch_id)

        self.assertEqual(outcome.records_processed, 2)
        self.assertEqual(outcome.batch.status, "Approved")
        self.assertEqual(outcome.batch.approved_by, "approver")
        self.assertIsNotNone(outcome.batch.approved_at)

        async with self.sessionmaker() as session:
            loans = (await session.execute(select(Loan).order_by(Loan.id))).scalars().all()
            staged_ids = (
                await session.execute(select(StagedLoan.id).order_by(StagedLoan.row_number))
            ).scalars().all()
        self.assertEqual(len(loans), 2)
        self.assertEqual(loans[0].ref_no, "LN001")
        self.assertEqual(loans[1].ref_no, f"{batch.batch_id}-{staged_ids[1]}")
        self.assertEqual(loans[0].status, "Approved")
        self.assertEqual(loans[0].remaining_balance, Decimal("500000.00"))
        self.assertEqual(loans[0].repayment_period, 12)
        self.assertEqual(loans[0].upload_batch_id, batch.batch_id)
        # Staged rows stay for audit
        self.assertEqual(await self.count(StagedLoan), 2)

        stored = await self.load_batch(batch.batch_id)
        self.assertEqual(stored.status, "Approved")
        self.assertEqual(stored.approved_by, "approver")

    async def test_batch_with_invalid_rows_is_not_approvable(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row(staff_no=None)])
        self.assertEqual(batch.status, "PendingValidation")

        with self.assertRaises(BatchNotApprovable) as ctx:
            await self.approve(LOANS, batch.batch_id)
        self.assertEqual(ctx.exception.invalid_records, 1)

        self.assertEqual(await self.count(Loan), 0)
        self.assertEqual((await self.load_batch(batch.batch_id)).status, "PendingValidation")

    async def test_approving_twice_fails_and_promotes_once(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        await self.approve(LOANS, batch.batch_id)

        with self.assertRaises(InvalidBatchState) as ctx:
            await self.approve(LOANS, batch.batch_id)
        self.assertEqual(ctx.exception.status, "Approved")
        self.assertEqual(await self.count(Loan), 1)

    async def test_unknown_loan_type_rolls_back_everything(self):
        batch = await self.stage(
            LOANS,
            [LOAN_HEADERS, loan_row(), loan_row(ref_no="LN002", loan_type="Holiday Loan")],
        )
        with self.assertRaises(UnknownTransactionType) as ctx:
            await self.approve(LOANS, batch.batch_id)
        self.assertEqual(ctx.exception.names, ["Holiday Loan"])

        self.assertEqual(await self.count(Loan), 0)
        stored = await self.load_batch(batch.batch_id)
        self.assertEqual(stored.status, "Validated")
        self.assertIsNone(stored.approved_by)

    async def test_missing_batch_id(self):
        with self.assertRaises(BatchNotFound) as ctx:
            await self.approve(LOANS, None)
        self.assertEqual(ctx.exception.message, "Batch ID is required")

    async def test_unknown_batch_id(self):
        with self.assertRaises(BatchNotFound):
            await self.approve(LOANS, "no-such-batch")

    async def test_batch_of_another_kind_is_not_found(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        with self.assertRaises(BatchNotFound):
            await self.approve(CONTRIBUTIONS, batch.batch_id)
        self.assertEqual((await self.load_batch(batch.batch_id)).status, "Validated")


class TestApproveContributions(DecisionTestCase):
    async def test_contributions_posted_and_balances_accumulated(self):
        batch = await self.stage(
            CONTRIBUTIONS,
            [
                CONTRIBUTION_HEADERS,
                ["REG001", "M001", "Savings", "2025-01-31", 2500],
                ["REG001", "M001", "Savings", "2025-02-28", 1500],
                ["REG002", "M002", "Share Capital", "2025-01-31", 10000],
            ],
        )
        outcome = await self.approve(CONTRIBUTIONS, batch.batch_id)

        self.assertEqual(outcome.records_processed, 3)
        self.assertEqual(await self.count(Contribution), 3)
        self.assertEqual(await self.balance("REG001", "Savings"), Decimal("4000.00"))
        self.assertEqual(await self.balance("REG002", "Share Capital"), Decimal("10000.00"))

    async def test_existing_balance_is_increased(self):
        first = await self.stage(CONTRIBUTIONS, [CONTRIBUTION_HEADERS, ["REG001", "M001", "Savings", "2025-01-31", 2500]])
        await self.approve(CONTRIBUTIONS, first.batch_id)
        second = await self.stage(CONTRIBUTIONS, [CONTRIBUTION_HEADERS, ["REG001", "M001", "Savings", "2025-02-28", 500]])
        await self.approve(CONTRIBUTIONS, second.batch_id)

        self.assertEqual(await self.balance("REG001", "Savings"), Decimal("3000.00"))


class TestApproveTransactions(DecisionTestCase):
    async def test_credit_and_debit_adjust_balance(self):
        batch = await self.stage(
            TRANSACTIONS,
            [
                TRANSACTION_HEADERS,
                ["REG001", "M001", "Savings", "2025-02-03", "Bank Transfer", 15000, "February savings"],
                ["REG001", "M001", "Withdrawal", "2025-02-04", "Cash", 5000, None],
            ],
        )
        await self.approve(TRANSACTIONS, batch.batch_id)

        async with self.sessionmaker() as session:
            transactions = (await session.execute(select(Transaction).order_by(Transaction.id))).scalars().all()
        self.assertEqual(len(transactions), 2)
        self.assertEqual(transactions[0].description, "February savings")
        self.assertEqual(transactions[1].description, "Batch Upload - Withdrawal")
        self.assertEqual(transactions[1].status, "Completed")
        self.assertEqual(transactions[1].reference_no, batch.batch_id)
        self.assertEqual(await self.balance("REG001", "Savings"), Decimal("15000.00"))
        self.assertEqual(await self.balance("REG001", "Withdrawal"), Decimal("-5000.00"))

    async def test_type_neither_credit_nor_debit_leaves_balance(self):
        batch = await self.stage(
            TRANSACTIONS,
            [TRANSACTION_HEADERS, ["REG001", "M001", "Personal Loan", "2025-02-03", "Cash", 700, None]],
        )
        with self.assertLogs("services.record_kinds", level="WARNING"):
            await self.approve(TRANSACTIONS, batch.batch_id)

        self.assertEqual(await self.count(Transaction), 1)
        self.assertEqual(await self.count(MemberBalance), 0)


class TestRejectBatch(DecisionTestCase):
    async def test_reject_records_reason_and_keeps_rows(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row(staff_no=None)])

        outcome = await self.reject(LOANS, batch.batch_id, "  Wrong month  ")

        self.assertEqual(outcome.batch.status, "Rejected")
        stored = await self.load_batch(batch.batch_id)
        self.assertEqual(stored.status, "Rejected")
        self.assertEqual(stored.rejection_reason, "Wrong month")
        self.assertEqual(stored.rejected_by, "approver")
        self.assertIsNotNone(stored.rejected_at)
        self.assertEqual(await self.count(StagedLoan), 1)
        self.assertEqual(await self.count(Loan), 0)

    async def test_reason_required(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        with self.assertRaises(RejectionReasonRequired):
            await self.reject(LOANS, batch.batch_id, "   ")
        self.assertEqual((await self.load_batch(batch.batch_id)).status, "Validated")

    async def test_rejected_batch_cannot_be_approved(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        await self.reject(LOANS, batch.batch_id, "Duplicate upload")

        with self.assertRaises(InvalidBatchState):
            await self.approve(LOANS, batch.batch_id)
        with self.assertRaises(InvalidBatchState):
            await self.reject(LOANS, batch.batch_id, "Again")
        self.assertEqual(await self.count(Loan), 0)

    async def test_approved_batch_cannot_be_rejected(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        await self.approve(LOANS, batch.batch_id)

        with self.assertRaises(InvalidBatchState):
            await self.reject(LOANS, batch.batch_id, "Too late")
        self.assertEqual((await self.load_batch(batch.batch_id)).status, "Approved")


class TestCompetingDecisions(DecisionTestCase):
    async def test_reject_committed_after_approval_read_the_batch_wins(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row(), loan_row(ref_no="LN002")])
        lock_open_batch = approval._lock_open_batch
        interleaved = False

        async def reject_in_between(session, kind, batch_id, action):
            nonlocal interleaved
            stale = await lock_open_batch(session, kind, batch_id, action)
            if not interleaved:
                interleaved = True
                await self.reject(LOANS, batch_id, "Superseded", operator="other-approver")
            return stale

        with patch("services.approval._lock_open_batch", reject_in_between):
            with self.assertRaises(InvalidBatchState) as ctx:
                await self.approve(LOANS, batch.batch_id)

        self.assertTrue(interleaved)
        self.assertEqual(ctx.exception.status, "Rejected")
        self.assertEqual(await self.count(Loan), 0)
        stored = await self.load_batch(batch.batch_id)
        self.assertEqual(stored.status, "Rejected")
        self.assertEqual(stored.rejected_by, "other-approver")
        self.assertIsNone(stored.approved_by)


class TestPendingRecords(DecisionTestCase):
    async def test_only_open_batches_of_the_kind_are_listed(self):
        approved = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        await self.approve(LOANS, approved.batch_id)
        open_batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row(ref_no="LN010"), loan_row(staff_no=None)])
        await self.stage(CONTRIBUTIONS, [CONTRIBUTION_HEADERS, ["REG001", "M001", "Savings", "2025-01-31", 1]])

        async with self.sessionmaker() as session:
            rows = await list_pending_records(session, LOANS)

        self.assertEqual(len(rows), 2)
        self.assertEqual({batch.batch_id for _, batch in rows}, {open_batch.batch_id})
        self.assertEqual([row.row_number for row, _ in rows], [2, 3])
        self.assertFalse(rows[0][1].is_approvable)

    async def test_listing_does_not_modify_anything(self):
        batch = await self.stage(LOANS, [LOAN_HEADERS, loan_row()])
        async with self.sessionmaker() as session:
            await list_pending_records(session, LOANS)
            await list_pending_records(session, LOANS)
        stored = await self.load_batch(batch.batch_id)
        self.assertEqual(stored.status, "Validated")
        self.assertTrue(stored.is_approvable)
        self.assertEqual(await self.count(UploadBatch), 1)


if __name__ == "__main__":
    unittest.main()
