from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session, joinedload

from .. import models


def _filtered(
    db: Session,
    tx_type: Optional[models.TransactionType] = None,
    category: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
):
    query = db.query(models.Transaction)
    if tx_type is not None:
        query = query.filter(models.Transaction.type == tx_type)
    if category:
        query = query.filter(models.Transaction.category.contains(category))
    if from_date is not None:
        query = query.filter(models.Transaction.date >= from_date)
    if to_date is not None:
        query = query.filter(models.Transaction.date <= to_date)
    return query


def list_transactions(
    db: Session,
    tx_type: Optional[models.TransactionType] = None,
    category: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = 1,
    page_size: int = 50,
) -> List[models.Transaction]:
    """Filtered page of transactions, newest date first."""
    return (
        _filtered(db, tx_type, category, from_date, to_date)
        .options(joinedload(models.Transaction.account))
        .order_by(models.Transaction.date.desc(), models.Transaction.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )


def compute_totals(df: pd.DataFrame) -> Dict[str, Decimal]:
    """
    Income/expense totals for a frame of transactions.
    Expects columns: ['amount', 'type'] with Decimal amounts.
    """
    if df.empty:
        income = expense = Decimal("0")
    else:
        is_income = df["type"] == models.TransactionType.INCOME.value
        income = Decimal(str(df.loc[is_income, "amount"].sum()))
        expense = Decimal(str(df.loc[~is_income, "amount"].sum()))

    return {
        "total_income": income,
        "total_expense": expense,
        "balance": income - expense,
    }


def summary(
    db: Session,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
) -> Dict:
    """Totals over every transaction in the date range, summed in memory."""
    rows = (
        _filtered(db, from_date=from_date, to_date=to_date)
        .with_entities(models.Transaction.amount, models.Transaction.type)
        .all()
    )
    df = pd.DataFrame(
        [{"amount": amount, "type": tx_type.value} for amount, tx_type in rows],
        columns=["amount", "type"],
    )

    totals = compute_totals(df)
    totals["from_date"] = from_date
    totals["to_date"] = to_date
    return totals


def transaction_categories(db: Session) -> List[str]:
    """Distinct category strings used by transactions, sorted."""
    rows = (
        db.query(models.Transaction.category)
        .distinct()
        .order_by(models.Transaction.category)
        .all()
    )
    return [name for (name,) in rows]
