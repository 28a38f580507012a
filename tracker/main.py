from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import models, schemas
from .config import get_settings
from .database import Base, SessionLocal, engine
from .errors import BusinessRuleError, InvalidReferenceError, NotFoundError
from .log import configure_logging, get_logger
from .seed import seed_initial_data
from .services import accounts as account_service
from .services import categories as category_service
from .services import ledger, reports

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level, json=settings.log_json)

    # Create tables on startup (no migrations yet)
    Base.metadata.create_all(bind=engine)

    if settings.seed_defaults:
        db = SessionLocal()
        try:
            seed_initial_data(db)
        finally:
            db.close()

    logger.info("startup_complete", database_url=settings.database_url)
    yield


app = FastAPI(
    title=get_settings().app_title,
    debug=get_settings().debug,
    lifespan=lifespan,
)


def get_db():
    """Dependency that provides a SQLAlchemy session to routes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---- Error mapping ----

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(BusinessRuleError)
@app.exception_handler(InvalidReferenceError)
async def bad_request_handler(request: Request, exc):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_error",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred"},
    )


@app.get("/health", tags=["system"])
def health_check():
    return {"status": "ok"}


# ---- Transaction APIs ----

@app.get(
    "/transactions",
    response_model=List[schemas.Transaction],
    tags=["transactions"],
)
def list_transactions(
    tx_type: Optional[models.TransactionType] = Query(None, alias="type"),
    category: Optional[str] = None,
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    db: Session = Depends(get_db),
):
    """List transactions (latest date first) with optional filters."""
    settings = get_settings()
    page_size = min(page_size or settings.default_page_size, settings.max_page_size)

    return reports.list_transactions(
        db,
        tx_type=tx_type,
        category=category,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )


@app.get(
    "/transactions/summary",
    response_model=schemas.TransactionSummary,
    tags=["transactions"],
)
def transaction_summary(
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    db: Session = Depends(get_db),
):
    """Total income, total expense and their difference over a date range."""
    return reports.summary(db, from_date=from_date, to_date=to_date)


@app.get(
    "/transactions/categories",
    response_model=List[str],
    tags=["transactions"],
)
def transaction_categories(db: Session = Depends(get_db)):
    return reports.transaction_categories(db)


@app.get(
    "/transactions/{transaction_id}",
    response_model=schemas.Transaction,
    tags=["transactions"],
)
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    return ledger.get_transaction(db, transaction_id)


@app.post(
    "/transactions",
    response_model=schemas.Transaction,
    status_code=status.HTTP_201_CREATED,
    tags=["transactions"],
)
def create_transaction(
    tx: schemas.TransactionCreate,
    db: Session = Depends(get_db),
):
    return ledger.create_transaction(db, tx)


@app.put(
    "/transactions/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["transactions"],
)
def update_transaction(
    transaction_id: int,
    tx: schemas.TransactionUpdate,
    db: Session = Depends(get_db),
):
    ledger.update_transaction(db, transaction_id, tx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete(
    "/transactions/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["transactions"],
)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    ledger.delete_transaction(db, transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---- Account APIs ----

@app.get("/accounts", response_model=List[schemas.Account], tags=["accounts"])
def list_accounts(db: Session = Depends(get_db)):
    return account_service.list_accounts(db)


@app.post(
    "/accounts/transfer",
    response_model=schemas.TransferResult,
    tags=["accounts"],
)
def transfer_money(
    transfer: schemas.TransferRequest,
    db: Session = Depends(get_db),
):
    """Move money between two accounts as a paired expense/income."""
    debit, credit = ledger.transfer_money(
        db,
        from_account_id=transfer.from_account_id,
        to_account_id=transfer.to_account_id,
        amount=transfer.amount,
        description=transfer.description,
        date=transfer.date,
    )
    return schemas.TransferResult(
        message="Transfer completed successfully",
        debit=schemas.Transaction.model_validate(debit),
        credit=schemas.Transaction.model_validate(credit),
        from_balance=debit.account.balance,
        to_balance=credit.account.balance,
    )


@app.get("/accounts/{account_id}", response_model=schemas.Account, tags=["accounts"])
def get_account(account_id: int, db: Session = Depends(get_db)):
    return account_service.get_account(db, account_id)


@app.post(
    "/accounts",
    response_model=schemas.Account,
    status_code=status.HTTP_201_CREATED,
    tags=["accounts"],
)
def create_account(account: schemas.AccountCreate, db: Session = Depends(get_db)):
    return account_service.create_account(db, account)


@app.put(
    "/accounts/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["accounts"],
)
def update_account(
    account_id: int,
    account: schemas.AccountUpdate,
    db: Session = Depends(get_db),
):
    account_service.update_account(db, account_id, account)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete(
    "/accounts/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["accounts"],
)
def delete_account(account_id: int, db: Session = Depends(get_db)):
    account_service.delete_account(db, account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/accounts/{account_id}/adjust-balance",
    response_model=schemas.Account,
    tags=["accounts"],
)
def adjust_balance(
    account_id: int,
    adjustment: schemas.BalanceAdjustment,
    db: Session = Depends(get_db),
):
    """
    Manually nudge an account balance.

    No transaction is recorded, so the balance stops matching the account's
    transaction history.
    """
    return ledger.adjust_balance(
        db,
        account_id,
        adjustment.amount,
        adjustment.type,
        description=adjustment.description,
    )


# ---- Category APIs ----

@app.get("/categories", response_model=List[schemas.Category], tags=["categories"])
def list_categories(
    tx_type: Optional[models.TransactionType] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    categories = category_service.list_categories(db, tx_type)
    usage = category_service.usage_by_name(db, [c.name for c in categories])
    return [category_service.to_schema(c, usage) for c in categories]


@app.get(
    "/categories/{category_id}",
    response_model=schemas.Category,
    tags=["categories"],
)
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = category_service.get_category(db, category_id)
    usage = category_service.usage_by_name(db, [category.name])
    return category_service.to_schema(category, usage)


@app.post(
    "/categories",
    response_model=schemas.Category,
    status_code=status.HTTP_201_CREATED,
    tags=["categories"],
)
def create_category(category: schemas.CategoryCreate, db: Session = Depends(get_db)):
    created = category_service.create_category(db, category)
    return category_service.to_schema(created, {})


@app.put(
    "/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["categories"],
)
def update_category(
    category_id: int,
    category: schemas.CategoryUpdate,
    db: Session = Depends(get_db),
):
    category_service.update_category(db, category_id, category)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete(
    "/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["categories"],
)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    category_service.delete_category(db, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
