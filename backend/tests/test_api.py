from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from station_ledger.api.deps import db
from station_ledger.core.security import create_access_token
from station_ledger.main import app


@pytest.fixture()
def client(session_factory):
    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[db] = _db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(role: str = "admin", sub: str = "admin", station_id: str | None = "ST-001") -> dict:
    return {"Authorization": f"Bearer {create_access_token(sub, role, station_id)}"}


def _create_account(client, number: str, opening: str) -> dict:
    r = client.post(
        "/accounts",
        json={"bank_name": "Sampath Bank", "account_number": number, "opening_balance": opening},
        headers=_auth(),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    return body["data"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_requests_without_token_are_rejected(client):
    r = client.get("/accounts")
    assert r.status_code in (401, 403)
    assert r.json()["success"] is False

    r = client.get("/accounts", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "invalid_token"}


def test_account_creation_is_admin_only(client):
    r = client.post(
        "/accounts",
        json={"bank_name": "X", "account_number": "1", "opening_balance": "0"},
        headers=_auth(role="cashier", sub="c1"),
    )
    assert r.status_code == 403
    assert r.json() == {"success": False, "error": "forbidden"}


def test_record_entry_and_insufficient_funds_envelope(client):
    acct = _create_account(client, "100-200", "500")

    r = client.post(
        f"/accounts/{acct['id']}/entries",
        json={"entry_type": "withdrawal", "amount": "120.50", "description": "diesel supplier"},
        headers=_auth(),
    )
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["data"]["balance_after"]) == Decimal("379.50")

    r = client.post(
        f"/accounts/{acct['id']}/entries",
        json={"entry_type": "withdrawal", "amount": "1000", "description": "too much"},
        headers=_auth(),
    )
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "insufficient_funds"}

    r = client.get(f"/accounts/{acct['id']}", headers=_auth())
    assert Decimal(r.json()["data"]["current_balance"]) == Decimal("379.50")


def test_unknown_account_maps_to_404(client):
    r = client.get("/accounts/12345", headers=_auth())
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "account_not_found"}


def test_validation_errors_use_envelope(client):
    acct = _create_account(client, "100-201", "500")
    r = client.post(
        f"/accounts/{acct['id']}/entries",
        json={"entry_type": "deposit", "amount": "-5", "description": "bad"},
        headers=_auth(),
    )
    assert r.status_code == 422
    assert r.json() == {"success": False, "error": "validation_error"}


def test_transfer_and_reconcile_endpoints(client):
    a = _create_account(client, "A-1", "5000")
    b = _create_account(client, "B-1", "0")

    r = client.post(
        "/transfers",
        json={"from_account_id": a["id"], "to_account_id": b["id"], "amount": "50", "description": "float"},
        headers=_auth(role="manager", sub="mgr"),
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["debit"]["transfer_ref"] == data["credit"]["transfer_ref"]

    r = client.post(
        "/transfers",
        json={"from_account_id": a["id"], "to_account_id": a["id"], "amount": "50"},
        headers=_auth(),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "same_account"

    r = client.post(
        f"/accounts/{a['id']}/reconciliation",
        json={"statement_balance": "5000", "as_of": "2024-03-31"},
        headers=_auth(),
    )
    assert r.status_code == 200, r.text
    rec = r.json()["data"]
    assert Decimal(rec["system_balance"]) == Decimal("4950")
    assert Decimal(rec["difference"]) == Decimal("50")
    assert rec["balanced"] is False

    r = client.get(f"/accounts/{a['id']}", headers=_auth())
    assert Decimal(r.json()["data"]["current_balance"]) == Decimal("4950")
    assert r.json()["data"]["last_reconciled_at"] == "2024-03-31"

    r = client.get(f"/accounts/{a['id']}/verify", headers=_auth())
    assert r.json()["data"]["consistent"] is True


def test_petty_cash_flow(client):
    h_admin = _auth()
    h_cashier = _auth(role="cashier", sub="cashier1")

    r = client.post("/petty-cash/stations/ST-001/replenishments", json={"amount": "1500"}, headers=h_admin)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["approval_status"] == "Approved"

    r = client.get("/petty-cash/stations/ST-001", headers=h_cashier)
    bal = r.json()["data"]
    assert bal["needs_replenishment"] is True
    assert Decimal(bal["recommended_replenishment"]) == Decimal("8500")

    r = client.post("/petty-cash/stations/ST-001/replenishments", json={"amount": "9000"}, headers=h_admin)
    assert r.status_code == 400
    assert r.json()["error"] == "limit_exceeded"

    r = client.post(
        "/petty-cash/stations/ST-001/withdrawals",
        json={"amount": "200", "description": "cleaning supplies", "category": "cleaning"},
        headers=h_cashier,
    )
    entry = r.json()["data"]
    assert entry["approval_status"] == "Pending"

    r = client.post(f"/petty-cash/entries/{entry['id']}/approve", headers=h_cashier)
    assert r.status_code == 403

    r = client.post(f"/petty-cash/entries/{entry['id']}/approve", headers=h_admin)
    assert r.json()["data"]["approval_status"] == "Approved"

    r = client.post(f"/petty-cash/entries/{entry['id']}/approve", headers=h_admin)
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_state"

    r = client.get("/petty-cash/stations/ST-001/summary", headers=h_admin)
    summary = r.json()["data"]
    assert Decimal(summary["current_balance"]) == Decimal("1300")
    assert Decimal(summary["total_withdrawals"]) == Decimal("200")


def test_loan_endpoints(client):
    h_admin = _auth()

    r = client.post(
        "/loans/schedule",
        json={"principal": "12000", "duration_months": 12, "interest_rate": "20", "start_date": "2024-01-01"},
        headers=h_admin,
    )
    sched = r.json()["data"]
    assert Decimal(sched["total_repayable"]) == Decimal("14400")
    assert len(sched["rows"]) == 12

    r = client.post(
        "/loans",
        json={
            "employee_id": "EMP-42",
            "amount": "12000",
            "purpose": "housing",
            "duration_months": 12,
            "start_date": "2024-01-01",
            "interest_rate": "20",
        },
        headers=_auth(role="cashier", sub="EMP-42"),
    )
    assert r.status_code == 200, r.text
    loan = r.json()["data"]
    assert loan["status"] == "pending"

    r = client.post(f"/loans/{loan['id']}/approve", headers=h_admin)
    assert r.json()["data"]["status"] == "active"

    r = client.post(f"/loans/{loan['id']}/installments/1/pay", json={"payroll_ref": "PR-1"}, headers=h_admin)
    assert Decimal(r.json()["data"]["remaining_amount"]) == Decimal("13200")

    r = client.post(f"/loans/{loan['id']}/installments/1/pay", json={}, headers=h_admin)
    assert r.status_code == 409
    assert r.json()["error"] == "already_paid"

    r = client.post("/loans/sweep-overdue", params={"as_of": "2024-04-15"}, headers=h_admin)
    assert r.json()["data"]["marked_overdue"] == 2

    r = client.get("/loans/employees/EMP-42/deductions", headers=h_admin)
    ded = r.json()["data"]
    assert ded[0]["installment_number"] == 2
    assert ded[0]["status"] == "overdue"


def test_mutations_are_audited(client):
    acct = _create_account(client, "AUD-1", "10")
    client.post(
        f"/accounts/{acct['id']}/entries",
        json={"entry_type": "deposit", "amount": "5", "description": "cash"},
        headers=_auth(role="cashier", sub="cashier9"),
    )

    r = client.get("/audit", params={"entity_type": "account", "entity_id": str(acct["id"])}, headers=_auth())
    rows = r.json()["data"]
    assert {row["action"] for row in rows} == {"account.create", "journal.record"}
    by_action = {row["action"]: row for row in rows}
    assert by_action["journal.record"]["actor"] == "cashier9"
    assert by_action["journal.record"]["details"]["amount"] == "5.00"


def test_stock_endpoints(client):
    h = _auth()
    r = client.post(
        "/tanks",
        json={"tank_code": "T2", "station_id": "ST-001", "fuel_type": "diesel", "capacity": "10000", "current_volume": "1000", "cost_price": "280"},
        headers=h,
    )
    tank = r.json()["data"]

    r = client.post(f"/tanks/{tank['id']}/deliveries", json={"volume": "1000", "cost_price": "300"}, headers=h)
    assert Decimal(r.json()["data"]["cost_price"]) == Decimal("290")

    r = client.post(f"/tanks/{tank['id']}/sales", json={"volume": "5000"}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "insufficient_stock"


def test_statement_endpoint(client):
    acct = _create_account(client, "ST-1", "100")
    client.post(
        f"/accounts/{acct['id']}/entries",
        json={"entry_type": "deposit", "amount": "40", "description": "sales", "entry_date": date(2024, 2, 3).isoformat()},
        headers=_auth(),
    )
    r = client.get(
        f"/accounts/{acct['id']}/statement",
        params={"start": "2024-02-01", "end": "2024-02-29"},
        headers=_auth(),
    )
    st = r.json()["data"]
    assert Decimal(st["opening_balance"]) == Decimal("100")
    assert Decimal(st["closing_balance"]) == Decimal("140")
    assert len(st["entries"]) == 1


def test_petty_cash_delete_permissions(client):
    h_admin = _auth()
    h_manager = _auth(role="manager", sub="mgr1")
    h_cashier = _auth(role="cashier", sub="cashier1")
    h_other = _auth(role="cashier", sub="cashier2")

    client.post("/petty-cash/stations/ST-001/replenishments", json={"amount": "3000"}, headers=h_admin)

    def _withdraw(headers, amount):
        r = client.post(
            "/petty-cash/stations/ST-001/withdrawals",
            json={"amount": amount, "description": "lamp", "category": "maintenance"},
            headers=headers,
        )
        return r.json()["data"]

    own = _withdraw(h_cashier, "100")
    assert own["approval_status"] == "Pending"

    r = client.delete(f"/petty-cash/entries/{own['id']}", headers=h_other)
    assert r.status_code == 403
    assert r.json() == {"success": False, "error": "forbidden"}

    r = client.delete(f"/petty-cash/entries/{own['id']}", headers=h_cashier)
    assert r.status_code == 200, r.text

    approved = _withdraw(h_manager, "150")
    assert approved["approval_status"] == "Approved"

    r = client.delete(f"/petty-cash/entries/{approved['id']}", headers=h_manager)
    assert r.status_code == 403

    r = client.delete(f"/petty-cash/entries/{approved['id']}", headers=h_admin)
    assert r.status_code == 200

    r = client.get("/petty-cash/stations/ST-001", headers=h_admin)
    assert Decimal(r.json()["data"]["current_balance"]) == Decimal("3000")

    r = client.delete("/petty-cash/entries/99999", headers=h_admin)
    assert r.status_code == 404
