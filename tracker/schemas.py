from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from .models import AccountType, TransactionType


# Decimal in Python, plain number in JSON
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case also accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# ---- Transactions ----

class TransactionBase(CamelModel):
    description: str = Field(min_length=1, max_length=200)
    amount: Money = Field(gt=0, max_digits=18, decimal_places=2)
    type: TransactionType
    category: str = Field(min_length=1, max_length=100)
    account_id: int
    date: datetime
    notes: Optional[str] = None


class TransactionCreate(TransactionBase):
    """Schema used when creating a transaction via API."""
    pass


class TransactionUpdate(TransactionBase):
    """Full replacement of a transaction's editable fields."""
    pass


class Transaction(TransactionBase):
    """Schema returned from API (includes DB id and account display fields)."""
    id: int
    account_name: Optional[str] = None
    account_icon: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TransactionSummary(CamelModel):
    total_income: Money
    total_expense: Money
    balance: Money  # income - expense
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


# ---- Accounts ----

class AccountBase(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: AccountType
    icon: str = Field(default="💰", min_length=1, max_length=10)


class AccountCreate(AccountBase):
    initial_balance: Money = Field(default=Decimal("0"), max_digits=18, decimal_places=2)


class AccountUpdate(AccountBase):
    pass


class Account(AccountBase):
    id: int
    balance: Money
    is_default: bool
    created_at: datetime
    updated_at: datetime
    transaction_count: int = 0


class BalanceAdjustment(CamelModel):
    amount: Money = Field(gt=0, max_digits=18, decimal_places=2)
    type: TransactionType
    description: Optional[str] = None


class TransferRequest(CamelModel):
    from_account_id: int
    to_account_id: int
    amount: Money = Field(gt=0, max_digits=18, decimal_places=2)
    description: Optional[str] = None
    date: Optional[datetime] = None  # defaults to today


class TransferResult(CamelModel):
    message: str
    debit: Transaction
    credit: Transaction
    from_balance: Money
    to_balance: Money


# ---- Categories ----

class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    type: TransactionType
    description: Optional[str] = Field(default=None, max_length=500)


class CategoryUpdate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class Category(CamelModel):
    id: int
    name: str
    type: TransactionType
    description: Optional[str] = None
    is_default: bool
    created_at: datetime
    transaction_count: int = 0
    total_amount: Money = Decimal("0")
