"""Tests for account administration rules and the account endpoints."""

from decimal import Decimal

import pytest
from sqlalchemy import inspect

from tracker import models, schemas
from tracker.errors import BusinessRuleError, NotFoundError
from tracker.services import accounts


def new_account(name="Wallet", account_type=models.AccountType.OTHER, **kwargs):
    return schemas.AccountCreate(name=name, type=account_type, **kwargs)


class TestAccountService:
    def test_create_account(self, db):
        account = accounts.create_account(db, new_account(icon="👛"))

        assert account.id is not None
        assert account.is_default is False
        assert account.balance == Decimal("0")
        assert account.icon == "👛"
        assert account.transaction_count == 0

    def test_transaction_count_is_counted_without_loading_rows(self, db, session_factory):
        accounts.create_account(db, new_account(initial_balance=Decimal("5")))
        accounts.create_account(db, new_account(name="Jar"))

        session = session_factory()
        try:
            listed = {a.name: a for a in accounts.list_accounts(session)}

            assert listed["Wallet"].transaction_count == 1
            assert listed["Jar"].transaction_count == 0
            assert listed["Cash"].transaction_count == 0
            assert all("transactions" in inspect(a).unloaded for a in listed.values())
        finally:
            session.close()

    def test_duplicate_name_is_case_insensitive(self, db):
        with pytest.raises(BusinessRuleError):
            accounts.create_account(db, new_account(name="cASH"))

    def test_opening_balance_is_booked_as_transaction(self, db, ledger_balance):
        account = accounts.create_account(db, new_account(initial_balance=Decimal("250")))

        assert account.balance == Decimal("250")
        assert account.balance == ledger_balance(account.id)
        [opening] = account.transactions
        assert opening.category == models.OPENING_BALANCE_CATEGORY
        assert opening.type == models.TransactionType.INCOME

    def test_negative_opening_balance(self, db, ledger_balance):
        account = accounts.create_account(
            db,
            new_account(name="Visa", account_type=models.AccountType.CREDIT_CARD,
                        initial_balance=Decimal("-120.50")),
        )

        assert account.balance == Decimal("-120.50")
        assert account.balance == ledger_balance(account.id)
        assert account.transactions[0].type == models.TransactionType.EXPENSE
        assert account.transactions[0].amount == Decimal("120.50")

    def test_update_account_keeps_balance(self, db):
        account = accounts.create_account(db, new_account(initial_balance=Decimal("10")))

        updated = accounts.update_account(
            db,
            account.id,
            schemas.AccountUpdate(name="Pocket", type=models.AccountType.CASH, icon="🪙"),
        )

        assert updated.name == "Pocket"
        assert updated.icon == "🪙"
        assert updated.balance == Decimal("10")

    def test_default_account_cannot_be_renamed(self, db):
        with pytest.raises(BusinessRuleError):
            accounts.update_account(
                db, 1, schemas.AccountUpdate(name="Petty Cash", type=models.AccountType.CASH)
            )

    def test_default_account_icon_can_change(self, db):
        updated = accounts.update_account(
            db, 1, schemas.AccountUpdate(name="Cash", type=models.AccountType.CASH, icon="💶")
        )
        assert updated.icon == "💶"

    def test_update_rejects_name_of_other_account(self, db):
        account = accounts.create_account(db, new_account())

        with pytest.raises(BusinessRuleError):
            accounts.update_account(
                db, account.id, schemas.AccountUpdate(name="bank account", type=models.AccountType.CASH)
            )

    def test_update_may_keep_own_name(self, db):
        updated = accounts.update_account(
            db, 2, schemas.AccountUpdate(name="Bank Account", type=models.AccountType.BANK,
                                         description="Main checking")
        )
        assert updated.description == "Main checking"

    def test_delete_default_account_rejected(self, db):
        with pytest.raises(BusinessRuleError):
            accounts.delete_account(db, 1)

    def test_delete_account_with_transactions_rejected(self, db):
        account = accounts.create_account(db, new_account(initial_balance=Decimal("5")))

        with pytest.raises(BusinessRuleError):
            accounts.delete_account(db, account.id)

    def test_delete_empty_account(self, db):
        account = accounts.create_account(db, new_account())
        account_id = account.id

        accounts.delete_account(db, account_id)

        assert db.get(models.Account, account_id) is None

    def test_unknown_account(self, db):
        with pytest.raises(NotFoundError):
            accounts.get_account(db, 404)


class TestAccountEndpoints:
    def test_list_accounts_sorted_by_name(self, client):
        response = client.get("/accounts")

        assert response.status_code == 200
        names = [a["name"] for a in response.json()]
        assert names == ["Bank Account", "Cash"]

    def test_get_account_uses_camel_case(self, client):
        body = client.get("/accounts/1").json()

        assert body["isDefault"] is True
        assert body["transactionCount"] == 0
        assert body["balance"] == 0
        assert body["type"] == "Cash"

    def test_get_missing_account(self, client):
        assert client.get("/accounts/99").status_code == 404

    def test_create_account(self, client):
        response = client.post(
            "/accounts",
            json={"name": "Brokerage", "type": "Investment", "icon": "📈", "initialBalance": 1500},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["balance"] == 1500
        assert body["transactionCount"] == 1
        assert body["isDefault"] is False

    def test_create_duplicate_account(self, client):
        response = client.post("/accounts", json={"name": "cash", "type": "Cash"})

        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    def test_create_account_blank_name(self, client):
        response = client.post("/accounts", json={"name": "  ", "type": "Cash"})

        assert response.status_code == 400

    def test_update_account(self, client):
        created = client.post("/accounts", json={"name": "Spare", "type": "Other"}).json()

        response = client.put(
            f"/accounts/{created['id']}", json={"name": "Checking", "type": "Bank", "icon": "🏦"}
        )

        assert response.status_code == 204
        assert client.get(f"/accounts/{created['id']}").json()["name"] == "Checking"

    def test_rename_default_account(self, client):
        response = client.put("/accounts/2", json={"name": "Checking", "type": "Bank"})

        assert response.status_code == 400

    def test_delete_default_account(self, client):
        response = client.delete("/accounts/1")

        assert response.status_code == 400

    def test_delete_account_with_transactions(self, client):
        created = client.post("/accounts", json={"name": "Spare", "type": "Other"}).json()
        client.post(
            "/transactions",
            json={
                "description": "Coffee",
                "amount": 4,
                "type": "Expense",
                "category": "Food",
                "accountId": created["id"],
                "date": "2025-01-10T08:00:00",
            },
        )

        assert client.delete(f"/accounts/{created['id']}").status_code == 400

    def test_delete_account(self, client):
        created = client.post("/accounts", json={"name": "Spare", "type": "Other"}).json()

        assert client.delete(f"/accounts/{created['id']}").status_code == 204
        assert client.get(f"/accounts/{created['id']}").status_code == 404

    def test_adjust_balance(self, client):
        response = client.post(
            "/accounts/1/adjust-balance",
            json={"amount": 30, "type": "Expense", "description": "Correction"},
        )

        assert response.status_code == 200
        assert response.json()["balance"] == -30
        assert response.json()["transactionCount"] == 0

    def test_adjust_balance_missing_account(self, client):
        response = client.post(
            "/accounts/50/adjust-balance", json={"amount": 30, "type": "Income"}
        )

        assert response.status_code == 404

    def test_transfer(self, client):
        client.post(
            "/transactions",
            json={
                "description": "Salary",
                "amount": 1000,
                "type": "Income",
                "category": "Salary",
                "accountId": 1,
                "date": "2025-01-01T09:00:00",
            },
        )

        response = client.post(
            "/accounts/transfer",
            json={"fromAccountId": 1, "toAccountId": 2, "amount": 500,
                  "date": "2025-01-02T00:00:00"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Transfer completed successfully"
        assert body["fromBalance"] == 500
        assert body["toBalance"] == 500
        assert body["debit"]["category"] == body["credit"]["category"] == "Transfer"
        assert body["debit"]["description"] == "Transfer from Cash to Bank Account"
        assert client.get("/accounts/1").json()["balance"] == 500
        assert client.get("/accounts/2").json()["balance"] == 500

        listed = client.get("/transactions", params={"category": "Transfer"}).json()
        assert len(listed) == 2

    def test_transfer_same_account(self, client):
        response = client.post(
            "/accounts/transfer", json={"fromAccountId": 1, "toAccountId": 1, "amount": 5}
        )

        assert response.status_code == 400

    def test_transfer_non_positive_amount(self, client):
        response = client.post(
            "/accounts/transfer", json={"fromAccountId": 1, "toAccountId": 2, "amount": 0}
        )

        assert response.status_code == 400

    def test_transfer_missing_account(self, client):
        response = client.post(
            "/accounts/transfer", json={"fromAccountId": 1, "toAccountId": 9, "amount": 5}
        )

        assert response.status_code == 404
