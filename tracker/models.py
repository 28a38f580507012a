import enum
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    TypeDecorator,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.orm import column_property, relationship

from .database import Base


TRANSFER_CATEGORY = "Transfer"
OPENING_BALANCE_CATEGORY = "Opening Balance"

CENT = Decimal("0.01")


class Cents(TypeDecorator):
    """
    Decimal money kept in the database as a whole number of cents.

    SQLite has no exact decimal column, so amounts are stored as BIGINT and
    arithmetic done in SQL (balance + delta, SUM) stays exact.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int((Decimal(value) / CENT).to_integral_value(rounding=ROUND_HALF_UP))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) * CENT).quantize(CENT)


class AccountType(str, enum.Enum):
    CASH = "Cash"
    BANK = "Bank"
    CREDIT_CARD = "CreditCard"
    INVESTMENT = "Investment"
    SAVINGS = "Savings"
    OTHER = "Other"


class TransactionType(str, enum.Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


def signed_amount(amount: Decimal, tx_type: TransactionType) -> Decimal:
    """Effect of a transaction on its account's balance."""
    return amount if tx_type == TransactionType.INCOME else -amount


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    type = Column(Enum(AccountType), nullable=False)
    icon = Column(String(10), nullable=False, default="💰")
    balance = Column(Cents, nullable=False, default=Decimal("0"))
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    transactions = relationship("Transaction", back_populates="account")


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("name", "type", name="uq_categories_name_type"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(Enum(TransactionType), nullable=False)
    description = Column(String(500), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(200), nullable=False)
    amount = Column(Cents, nullable=False)
    type = Column(Enum(TransactionType), index=True, nullable=False)
    # matched to Category.name, not a foreign key
    category = Column(String(100), index=True, nullable=False)
    date = Column(DateTime, index=True, nullable=False)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    account_id = Column(Integer, ForeignKey("accounts.id"), index=True, nullable=False)
    account = relationship("Account", back_populates="transactions")

    @property
    def account_name(self):
        return self.account.name if self.account else None

    @property
    def account_icon(self):
        return self.account.icon if self.account else None


# counted in SQL so listing accounts never loads their transactions
Account.transaction_count = column_property(
    select(func.count(Transaction.id))
    .where(Transaction.account_id == Account.id)
    .correlate_except(Transaction)
    .scalar_subquery()
)
