from decimal import Decimal

from sqlalchemy.orm import Session

from . import models
from .database import unit_of_work
from .log import get_logger

logger = get_logger(__name__)


DEFAULT_ACCOUNTS = [
    ("Cash", models.AccountType.CASH, "💵"),
    ("Bank Account", models.AccountType.BANK, "🏦"),
    ("Credit Card", models.AccountType.CREDIT_CARD, "💳"),
    ("Savings Account", models.AccountType.SAVINGS, "🏛️"),
]

DEFAULT_INCOME_CATEGORIES = [
    "Salary",
    "Freelance",
    "Investment",
    "Gift",
    "Bonus",
    "Rental Income",
    "Refund",
    "Other Income",
]

DEFAULT_EXPENSE_CATEGORIES = [
    "Food & Dining",
    "Transportation",
    "Housing",
    "Utilities",
    "Entertainment",
    "Shopping",
    "Healthcare",
    "Education",
    "Insurance",
    "Subscriptions",
    "Travel",
    "Other Expense",
]


def seed_initial_data(db: Session) -> None:
    """Insert default accounts and categories into empty tables."""
    seeded_accounts = seeded_categories = 0

    with unit_of_work(db):
        if db.query(models.Account).count() == 0:
            for name, account_type, icon in DEFAULT_ACCOUNTS:
                db.add(
                    models.Account(
                        name=name,
                        type=account_type,
                        icon=icon,
                        balance=Decimal("0"),
                        is_default=True,
                    )
                )
            seeded_accounts = len(DEFAULT_ACCOUNTS)

        if db.query(models.Category).count() == 0:
            defaults = [
                (name, models.TransactionType.INCOME) for name in DEFAULT_INCOME_CATEGORIES
            ] + [
                (name, models.TransactionType.EXPENSE) for name in DEFAULT_EXPENSE_CATEGORIES
            ]
            for name, tx_type in defaults:
                db.add(models.Category(name=name, type=tx_type, is_default=True))
            seeded_categories = len(defaults)

    if seeded_accounts:
        logger.info("seeded_accounts", count=seeded_accounts)
    if seeded_categories:
        logger.info("seeded_categories", count=seeded_categories)
