"""
API Tests

Exercises the HTTP surface end to end through TestClient:
1. User, account and transaction routes
2. Error mapping to problem+json bodies
3. Request id header and health probe

Run with: pytest tests/test_api.py -v
"""

import uuid
from unittest.mock import patch

PROBLEM = "application/problem+json"


def create_user(client, email="ada@example.com"):
    response = client.post("/api/v1/users", json={"name": "Ada", "email": email})
    assert response.status_code == 201
    return response.json()


def create_account(client, user_id, name="Checking", currency=None):
    body = {"user_id": user_id, "name": name, "type": "CHECKING"}
    if currency:
        body["currency"] = currency
    response = client.post("/api/v1/accounts", json=body)
    assert response.status_code == 201
    return response.json()


def book(client, account_id, amount, type_="INCOME", currency="USD", **extra):
    body = {"account_id": account_id, "amount": amount, "currency": currency, "type": type_}
    body.update(extra)
    return client.post("/api/v1/transactions", json=body)


class TestUserRoutes:

    def test_create_get_search(self, client):
        user = create_user(client)

        assert client.get(f"/api/v1/users/{user['id']}").json()["email"] == "ada@example.com"
        found = client.get("/api/v1/users/search", params={"email": "ada@example.com"})
        assert found.status_code == 200
        assert found.json()["id"] == user["id"]

    def test_duplicate_email_is_400(self, client):
        create_user(client)
        response = client.post("/api/v1/users", json={"name": "Bob", "email": "ada@example.com"})

        assert response.status_code == 400
        assert response.headers["content-type"].startswith(PROBLEM)
        assert "ada@example.com" in response.json()["detail"]

    def test_update_and_delete(self, client):
        user = create_user(client)

        updated = client.put(f"/api/v1/users/{user['id']}", json={"name": "Ada Lovelace"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "Ada Lovelace"
        assert updated.json()["email"] == "ada@example.com"

        assert client.delete(f"/api/v1/users/{user['id']}").status_code == 204
        assert client.get(f"/api/v1/users/{user['id']}").status_code == 404

    def test_missing_user_is_404_problem(self, client):
        response = client.get(f"/api/v1/users/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.headers["content-type"].startswith(PROBLEM)
        body = response.json()
        assert body["status"] == 404
        assert body["title"] == "Not Found"
        assert body["instance"].startswith("/api/v1/users/")

    def test_non_uuid_path_is_400(self, client):
        response = client.get("/api/v1/users/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "user_id"

    def test_list_accounts(self, client):
        user = create_user(client)
        create_account(client, user["id"], "A")
        create_account(client, user["id"], "B")

        response = client.get(f"/api/v1/users/{user['id']}/accounts")

        assert response.status_code == 200
        assert sorted(a["name"] for a in response.json()) == ["A", "B"]


class TestAccountRoutes:

    def test_create_defaults(self, client):
        account = create_account(client, create_user(client)["id"])

        assert account["balance"] == 0.0
        assert account["currency"] == "USD"

    def test_duplicate_name_is_400(self, client):
        user = create_user(client)
        create_account(client, user["id"])
        response = client.post(
            "/api/v1/accounts",
            json={"user_id": user["id"], "name": "Checking", "type": "SAVINGS"},
        )
        assert response.status_code == 400

    def test_unknown_user_is_404(self, client):
        response = client.post(
            "/api/v1/accounts",
            json={"user_id": str(uuid.uuid4()), "name": "Checking", "type": "CHECKING"},
        )
        assert response.status_code == 404

    def test_update_ignores_balance(self, client):
        account = create_account(client, create_user(client)["id"])
        book(client, account["id"], 75)

        response = client.put(
            f"/api/v1/accounts/{account['id']}",
            json={"name": "Main", "balance": 1},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Main"
        assert response.json()["balance"] == 75.0

    def test_currency_change_with_transactions_is_400(self, client):
        account = create_account(client, create_user(client)["id"])
        book(client, account["id"], 10)

        response = client.put(f"/api/v1/accounts/{account['id']}", json={"currency": "EUR"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "currency"
        assert client.get(f"/api/v1/accounts/{account['id']}").json()["currency"] == "USD"

    def test_delete(self, client):
        account = create_account(client, create_user(client)["id"])
        assert client.delete(f"/api/v1/accounts/{account['id']}").status_code == 204
        assert client.get(f"/api/v1/accounts/{account['id']}").status_code == 404


class TestTransactionRoutes:

    def test_create_returns_entry_and_account(self, client):
        account = create_account(client, create_user(client)["id"])

        response = book(client, account["id"], "19.99", description="books", date="2026-10-01T12:00:00Z")

        assert response.status_code == 201
        body = response.json()
        assert body["entry"]["amount"] == 19.99
        assert body["entry"]["description"] == "books"
        assert body["entry"]["occurred_at"].startswith("2026-10-01T12:00:00")
        assert body["updated_account"]["balance"] == 19.99

    def test_zero_amount_is_400_with_field_errors(self, client):
        account = create_account(client, create_user(client)["id"])

        response = book(client, account["id"], 0)

        assert response.status_code == 400
        assert response.headers["content-type"].startswith(PROBLEM)
        body = response.json()
        assert body["title"] == "Validation Error"
        assert body["errors"] == [{"field": "amount", "message": "amount must be greater than zero"}]
        listing = client.get(f"/api/v1/accounts/{account['id']}/transactions")
        assert listing.json() == []

    def test_amount_wider_than_column_is_400(self, client):
        account = create_account(client, create_user(client)["id"])

        response = book(client, account["id"], "1e25")

        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "amount", "message": "amount is out of range"}]
        assert client.get(f"/api/v1/accounts/{account['id']}").json()["balance"] == 0.0

    def test_missing_fields_are_listed(self, client):
        response = client.post("/api/v1/transactions", json={"amount": 5})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert {"account_id", "currency", "type"} <= fields

    def test_malformed_json_is_400(self, client):
        response = client.post(
            "/api/v1/transactions",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_unknown_account_is_404(self, client):
        response = book(client, str(uuid.uuid4()), 10)

        assert response.status_code == 404
        assert "account" in response.json()["detail"]

    def test_update_and_delete_move_balance(self, client):
        account = create_account(client, create_user(client)["id"])
        entry = book(client, account["id"], 100).json()["entry"]
        book(client, account["id"], 40, "EXPENSE")

        updated = client.put(f"/api/v1/transactions/{entry['id']}", json={"amount": 60})
        assert updated.status_code == 200
        assert updated.json()["updated_account"]["balance"] == 20.0

        deleted = client.delete(f"/api/v1/transactions/{entry['id']}")
        assert deleted.status_code == 200
        assert deleted.json()["updated_account"]["balance"] == -40.0
        assert client.get(f"/api/v1/transactions/{entry['id']}").status_code == 404

    def test_update_rejects_zero_amount(self, client):
        account = create_account(client, create_user(client)["id"])
        entry = book(client, account["id"], 10).json()["entry"]

        response = client.put(f"/api/v1/transactions/{entry['id']}", json={"amount": 0})

        assert response.status_code == 400
        assert client.get(f"/api/v1/accounts/{account['id']}").json()["balance"] == 10.0

    def test_list_most_recent_first(self, client):
        account = create_account(client, create_user(client)["id"])
        book(client, account["id"], 1, occurred_at="2026-01-01T00:00:00")
        book(client, account["id"], 2, occurred_at="2026-03-01T00:00:00")

        entries = client.get(f"/api/v1/accounts/{account['id']}/transactions").json()

        assert [e["amount"] for e in entries] == [2.0, 1.0]

    def test_storage_failure_is_generic_500(self, client):
        account = create_account(client, create_user(client)["id"])
        from sqlalchemy.exc import OperationalError
        fault = OperationalError("UPDATE accounts", {}, Exception("disk I/O error at /var/lib/db"))

        with patch("app.modules.accounts.repository.apply_balance_delta", side_effect=fault):
            response = book(client, account["id"], 10)

        assert response.status_code == 500
        assert response.headers["content-type"].startswith(PROBLEM)
        assert "disk" not in response.text
        assert client.get(f"/api/v1/accounts/{account['id']}").json()["balance"] == 0.0


class TestPlumbing:

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    def test_request_id_is_generated(self, client):
        response = client.get(f"/api/v1/users/{uuid.uuid4()}")
        assert uuid.UUID(response.headers["X-Request-ID"])

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["components"]["database"]["status"] == "healthy"

    def test_health_reports_database_down(self, client):
        with patch("app.main.check_database", return_value=False):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_unknown_route_is_404_problem(self, client):
        response = client.get("/api/v1/nothing-here")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith(PROBLEM)

    def test_wrong_method_is_405(self, client):
        response = client.patch("/api/v1/transactions")
        assert response.status_code == 405
