from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import unit_of_work
from ..errors import BusinessRuleError, NotFoundError
from ..log import get_logger

logger = get_logger(__name__)


def usage_by_name(db: Session, names: Optional[List[str]] = None) -> Dict[str, Tuple[int, Decimal]]:
    """
    Transaction count and amount total per category name.

    Transactions reference categories by name only, so the type of the
    transaction is not considered.
    """
    query = db.query(
        models.Transaction.category,
        func.count(models.Transaction.id),
        func.sum(models.Transaction.amount),
    ).group_by(models.Transaction.category)
    if names is not None:
        query = query.filter(models.Transaction.category.in_(names))

    return {
        name: (int(count), Decimal(total) if total is not None else Decimal("0"))
        for name, count, total in query.all()
    }


def to_schema(category: models.Category, usage: Dict[str, Tuple[int, Decimal]]) -> schemas.Category:
    count, total = usage.get(category.name, (0, Decimal("0")))
    return schemas.Category(
        id=category.id,
        name=category.name,
        type=category.type,
        description=category.description,
        is_default=category.is_default,
        created_at=category.created_at,
        transaction_count=count,
        total_amount=total,
    )


def list_categories(db: Session, tx_type: Optional[models.TransactionType] = None) -> List[models.Category]:
    query = db.query(models.Category)
    if tx_type is not None:
        query = query.filter(models.Category.type == tx_type)
    return query.order_by(models.Category.type, models.Category.name).all()


def get_category(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _find(db: Session, name: str, tx_type: models.TransactionType, exclude_id: Optional[int] = None):
    query = db.query(models.Category).filter(
        models.Category.name == name,
        models.Category.type == tx_type,
    )
    if exclude_id is not None:
        query = query.filter(models.Category.id != exclude_id)
    return query.first()


def create_category(db: Session, data: schemas.CategoryCreate) -> models.Category:
    if _find(db, data.name, data.type) is not None:
        raise BusinessRuleError("A category with this name and type already exists")

    with unit_of_work(db):
        category = models.Category(
            name=data.name,
            type=data.type,
            description=data.description,
            is_default=False,
        )
        db.add(category)

    logger.info("category_created", category_id=category.id, name=category.name)
    return category


def update_category(db: Session, category_id: int, data: schemas.CategoryUpdate) -> models.Category:
    """
    Rename or re-describe a user category.

    Existing transactions keep the old category string.
    """
    category = get_category(db, category_id)

    if category.is_default:
        raise BusinessRuleError("Cannot update default categories")
    if _find(db, data.name, category.type, exclude_id=category_id) is not None:
        raise BusinessRuleError(
            "A category with this name already exists for this transaction type"
        )

    with unit_of_work(db):
        category.name = data.name
        category.description = data.description

    logger.info("category_updated", category_id=category.id, name=category.name)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)

    if category.is_default:
        raise BusinessRuleError("Cannot delete default categories")

    in_use = (
        db.query(models.Transaction)
        .filter(models.Transaction.category == category.name)
        .first()
        is not None
    )
    if in_use:
        raise BusinessRuleError(
            "Cannot delete category that has transactions. "
            "Please delete or reassign transactions first."
        )

    with unit_of_work(db):
        db.delete(category)

    logger.info("category_deleted", category_id=category_id)
