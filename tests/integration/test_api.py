"""Integration tests for API endpoints"""

import uuid
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

USER_ID = "user_1"
HEADERS = {"X-User-Id": USER_ID}


@pytest.fixture
def gym_payload() -> dict:
    return {
        "name": "Gym",
        "type": "FIXED",
        "start_date": "2025-01-15",
        "due_day": 20,
        "installments": 3,
        "installment_amount": 10000,
    }


@pytest.fixture
def gym(client: TestClient, gym_payload: dict) -> dict:
    response = client.post("/v1/accounts", json=gym_payload, headers=HEADERS)
    assert response.status_code == 201
    return response.json()["account"]


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "billing_account_mutations_total" in response.text


def test_requests_without_user_are_rejected(client: TestClient, gym_payload: dict):
    """Test missing or blank X-User-Id returns 401"""
    response = client.post("/v1/accounts", json=gym_payload)
    assert response.status_code == 401

    response = client.get("/v1/accounts", headers={"X-User-Id": "  "})
    assert response.status_code == 401


def test_create_account(client: TestClient, gym_payload: dict):
    """POST /v1/accounts commits the account and its schedule"""
    response = client.post("/v1/accounts", json=gym_payload, headers=HEADERS)

    assert response.status_code == 201
    data = response.json()
    assert data["stale"] is False
    assert {effect["name"] for effect in data["side_effects"]} >= {"generate_installments", "recalculate_summary"}
    assert data["account"]["total_amount"] == 30000
    assert data["account"]["reference_month"] == 1

    detail = client.get(f"/v1/accounts/{data['account']['id']}", headers=HEADERS).json()
    assert [item["due_date"] for item in detail["installment_list"]] == ["2025-01-20", "2025-02-20", "2025-03-20"]
    assert (detail["amount_paid"], detail["remaining_amount"]) == (0, 30000)


def test_create_account_rule_violation(client: TestClient, gym_payload: dict):
    """Test POST /v1/accounts with an out-of-range due day"""
    gym_payload["due_day"] = 32

    response = client.post("/v1/accounts", json=gym_payload, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_DUE_DAY"


def test_account_belongs_to_its_user(client: TestClient, gym: dict):
    """Test GET /v1/accounts/{id} for another user's account"""
    response = client.get(f"/v1/accounts/{gym['id']}", headers={"X-User-Id": "user_2"})

    assert response.status_code == 404
    assert response.json()["code"] == "ACCOUNT_NOT_FOUND"


def test_create_account_survives_summary_failure(client: TestClient, gym_payload: dict):
    """Test account is kept and flagged stale when the summary step fails"""
    with patch(
        "billing_ledger.services.summaries.MonthlySummaryService.recalculate",
        side_effect=RuntimeError("database hiccup"),
    ):
        response = client.post("/v1/accounts", json=gym_payload, headers=HEADERS)

    assert response.status_code == 201
    data = response.json()
    assert data["stale"] is True
    failed = [effect for effect in data["side_effects"] if not effect["succeeded"]]
    assert failed[0]["name"] == "recalculate_summary"
    assert client.get("/v1/accounts", headers=HEADERS).json()["total"] == 1


def test_pay_installment_then_delete_transaction(client: TestClient, gym: dict):
    """Test installment payment and its reversal through the API"""
    installments = client.get(f"/v1/accounts/{gym['id']}/installments", headers=HEADERS).json()["items"]
    first = installments[0]

    paid = client.post(f"/v1/installments/{first['id']}/pay", headers=HEADERS)
    assert paid.status_code == 200
    transaction = paid.json()["transaction"]
    assert transaction["value"] == 10000
    assert transaction["category"] == "INSTALLMENT_PAYMENT"

    again = client.post(f"/v1/installments/{first['id']}/pay", headers=HEADERS)
    assert again.status_code == 400
    assert again.json()["code"] == "INSTALLMENT_ALREADY_PAID"

    deleted = client.delete(f"/v1/transactions/{transaction['id']}", headers=HEADERS)
    assert deleted.status_code == 200
    assert deleted.json()["id"] == transaction["id"]

    reverted = client.get(f"/v1/installments/{first['id']}", headers=HEADERS).json()
    assert reverted["is_paid"] is False


def test_individual_installment_delete_rejected(client: TestClient, gym: dict):
    """Test DELETE /v1/installments/{id} is refused"""
    first = client.get(f"/v1/accounts/{gym['id']}/installments", headers=HEADERS).json()["items"][0]

    response = client.delete(f"/v1/installments/{first['id']}", headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["code"] == "INSTALLMENT_INDIVIDUAL_DELETION_NOT_ALLOWED"


def test_pay_account(client: TestClient, gym: dict):
    """Test POST /v1/accounts/{id}/pay with short and full payments"""
    response = client.post(f"/v1/accounts/{gym['id']}/pay", json={"payment_amount": 1000}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["code"] == "INSUFFICIENT_PAYMENT_AMOUNT"

    response = client.post(f"/v1/accounts/{gym['id']}/pay", headers=HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["account"]["is_paid"] is True
    assert data["installments_settled"] == 3


def test_monthly_summary(client: TestClient, gym: dict):
    """Test GET /v1/summaries/{year}/{month}"""
    client.post(
        "/v1/transactions/income",
        json={"description": "Salary", "value": 250000, "date": "2025-01-05"},
        headers=HEADERS,
    )

    response = client.get("/v1/summaries/2025/1", headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["total_income"] == 250000
    assert data["bills_to_pay"] == 10000
    assert data["bills_count"] == 1
    assert data["status"] == "GOOD"


def test_monthly_summary_rejects_bad_month(client: TestClient):
    """Test month outside 1..12 fails validation"""
    response = client.get("/v1/summaries/2025/13", headers=HEADERS)
    assert response.status_code == 422


def test_transactions_listing_and_balance(client: TestClient):
    """Test transaction filters, balance and category report endpoints"""
    client.post(
        "/v1/transactions/income",
        json={"description": "Salary", "value": 250000, "date": "2025-01-05", "category": "SALARY"},
        headers=HEADERS,
    )
    client.post(
        "/v1/transactions/expense",
        json={"description": "Market", "value": 40000, "date": "2025-01-06", "category": "FOOD"},
        headers=HEADERS,
    )

    listing = client.get("/v1/transactions", params={"type": "EXPENSE"}, headers=HEADERS).json()
    assert listing["total"] == 1
    assert listing["items"][0]["description"] == "Market"

    balance = client.get("/v1/transactions/balance", params={"month": 1, "year": 2025}, headers=HEADERS).json()
    assert balance["balance"] == 210000
    assert balance["standalone_expenses"] == 40000

    categories = client.get(
        "/v1/transactions/expenses-by-category", params={"month": 1, "year": 2025}, headers=HEADERS
    ).json()["categories"]
    assert categories == [{"category": "FOOD", "source": "transaction", "value": 40000, "percentage": 100.0}]


def test_negative_expense_rejected(client: TestClient):
    """Test negative expense value returns 400"""
    response = client.post(
        "/v1/transactions/expense",
        json={"description": "Refund?", "value": -5, "date": "2025-01-06"},
        headers=HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "NEGATIVE_AMOUNT"


def test_credit_card_link(client: TestClient, gym: dict):
    """Test link, duplicate link, listing and unlink of a card account"""
    card = client.post(
        "/v1/accounts",
        json={
            "name": "Visa",
            "type": "CREDIT_CARD",
            "start_date": "2025-01-01",
            "due_day": 15,
            "total_amount": 90000,
            "installments": 3,
            "closing_day": 5,
            "credit_limit": 500000,
        },
        headers=HEADERS,
    ).json()["account"]
    url = f"/v1/credit-cards/{card['id']}/accounts"

    linked = client.post(url, json={"account_id": gym["id"]}, headers=HEADERS)
    assert linked.status_code == 201
    assert linked.json()["item"]["account_id"] == gym["id"]

    duplicate = client.post(url, json={"account_id": gym["id"]}, headers=HEADERS)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CREDIT_CARD_LINK_ALREADY_EXISTS"

    accounts = client.get(url, headers=HEADERS).json()["accounts"]
    assert [account["id"] for account in accounts] == [gym["id"]]

    first = client.get(f"/v1/accounts/{card['id']}/installments", headers=HEADERS).json()["items"][0]
    assert first["breakdown"]["total"] == 10000

    unlinked = client.delete(f"{url}/{gym['id']}", headers=HEADERS)
    assert unlinked.status_code == 200


def test_credit_card_link_to_unknown_card(client: TestClient, gym: dict):
    """Test linking to a missing card returns 404"""
    response = client.post(
        f"/v1/credit-cards/{uuid.uuid4()}/accounts", json={"account_id": gym["id"]}, headers=HEADERS
    )

    assert response.status_code == 404
    assert response.json()["code"] == "CREDIT_CARD_NOT_FOUND"


def test_delete_account(client: TestClient, gym: dict):
    """Test DELETE /v1/accounts/{id} removes account and schedule"""
    response = client.delete(f"/v1/accounts/{gym['id']}", headers=HEADERS)

    assert response.status_code == 200
    assert client.get(f"/v1/accounts/{gym['id']}", headers=HEADERS).status_code == 404
    assert client.get(f"/v1/accounts/{gym['id']}/installments", headers=HEADERS).status_code == 404


def test_request_id_is_echoed(client: TestClient):
    """Test incoming X-Request-ID is propagated to the response"""
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
