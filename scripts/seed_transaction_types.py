"""
Seed the transaction type catalogue used to resolve loan, contribution and
transaction type names at approval time.
Run: python -m scripts.seed_transaction_types (from the project root).
"""
import asyncio
import os
import sys

# Add parent so we can import config / database / models
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import AsyncSessionLocal, init_db
from models import TransactionType
from utils.logging import configure_logging, get_logger

log = get_logger("scripts.seed_transaction_types")

TRANSACTION_TYPES = [
    # Loan products: tracked on the loan itself, never on a member balance
    {"type_name": "Personal Loan", "is_credit": False, "is_debit": False},
    {"type_name": "Emergency Loan", "is_credit": False, "is_debit": False},
    {"type_name": "Business Loan", "is_credit": False, "is_debit": False},
    {"type_name": "Educational Loan", "is_credit": False, "is_debit": False},
    # Member funds
    {"type_name": "Savings", "is_credit": True, "is_debit": False},
    {"type_name": "Share Capital", "is_credit": True, "is_debit": False},
    {"type_name": "Special Deposit", "is_credit": True, "is_debit": False},
    {"type_name": "Loan Repayment", "is_credit": True, "is_debit": False},
    {"type_name": "Withdrawal", "is_credit": False, "is_debit": True},
    {"type_name": "Loan Disbursement", "is_credit": False, "is_debit": True},
]


async def seed_transaction_types(session: AsyncSession, types=TRANSACTION_TYPES) -> int:
    """Insert missing types and refresh the credit/debit flags of existing ones. Returns rows inserted."""
    inserted = 0
    for data in types:
        existing = await session.execute(
            select(TransactionType).where(TransactionType.type_name == data["type_name"])
        )
        transaction_type = existing.scalar_one_or_none()
        if transaction_type is not None:
            transaction_type.is_credit = data["is_credit"]
            transaction_type.is_debit = data["is_debit"]
            continue
        session.add(TransactionType(**data))
        inserted += 1
    await session.flush()
    return inserted


async def seed():
    configure_logging(settings.log_level, settings.json_logs)
    await init_db()
    async with AsyncSessionLocal() as session:
        inserted = await seed_transaction_types(session)
        await session.commit()
    log.info("Seed complete: %d new transaction type(s), %d total", inserted, len(TRANSACTION_TYPES))


if __name__ == "__main__":
    asyncio.run(seed())
