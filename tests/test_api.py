from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from fakes import FakeRecorder, make_settings, message_update
from safemoney.core.container import ServiceHub
from safemoney.main import create_app
from safemoney.services.transactions import TransactionRecord

T0 = datetime(2025, 5, 1, 9, 30, tzinfo=timezone.utc)


class RecordingRouter:
    def __init__(self) -> None:
        self.payloads: list = []

    async def handle_raw(self, payload) -> None:
        self.payloads.append(payload)


def _client(records=None, fail: bool = False, **settings_overrides):
    settings = make_settings(**settings_overrides)
    router = RecordingRouter()
    hub = ServiceHub(settings=settings, router=router, recorder=FakeRecorder(records, fail=fail))
    return TestClient(create_app(settings, hub)), router


def _records() -> list[TransactionRecord]:
    return [
        TransactionRecord(1, 7, "TRY", "BTC", 100.0, 0.00005, T0),
        TransactionRecord(2, 7, "BTC", "TRY", 0.001, 50.0, T0 + timedelta(hours=1)),
        TransactionRecord(3, 8, "TRY", "DOGE", 25.0, 5.0, T0 + timedelta(hours=2)),
    ]


def test_list_all_transactions_newest_first() -> None:
    client, _ = _client(_records())
    with client:
        resp = client.get("/api/transactions")
    assert resp.status_code == 200
    body = resp.json()
    assert [t["id"] for t in body] == [3, 2, 1]
    assert body[2] == {
        "id": 1,
        "userId": 7,
        "fromCurrency": "TRY",
        "toCurrency": "BTC",
        "fromAmount": 100.0,
        "toAmount": 0.00005,
        "timestamp": T0.isoformat(),
    }


def test_list_transactions_for_user() -> None:
    client, _ = _client(_records())
    with client:
        resp = client.get("/api/transactions", params={"userId": 7})
    assert [t["id"] for t in resp.json()] == [2, 1]


def test_read_failure_is_500() -> None:
    client, _ = _client(fail=True)
    with client:
        assert client.get("/api/transactions").status_code == 500
        assert client.get("/api/analytics").status_code == 500


def test_analytics_payload() -> None:
    client, _ = _client(_records())
    with client:
        body = client.get("/api/analytics").json()
    assert body["stats"] == {
        "totalTransactions": 3,
        "uniqueUsers": 2,
        "totalFiatVolume": 175.0,
        "mostPopularCurrency": "TRY",
    }
    users = {u["userId"]: u for u in body["users"]}
    assert users[7]["totalFiatVolume"] == 150.0
    assert users[7]["totalTransactionCount"] == 2
    assert users[7]["currencySet"] == ["BTC", "TRY"]
    assert users[7]["lastActiveTimestamp"] == (T0 + timedelta(hours=1)).isoformat()


def test_webhook_forwards_payload() -> None:
    client, router = _client()
    payload = message_update(42, "/start")
    with client:
        resp = client.post("/webhook", json=payload)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert router.payloads == [payload]


def test_webhook_secret_is_enforced() -> None:
    client, router = _client(webhook_secret="s3cret")
    with client:
        denied = client.post("/webhook", json={"update_id": 1})
        allowed = client.post(
            "/webhook", json={"update_id": 2}, headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"}
        )
    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert router.payloads == [{"update_id": 2}]


def test_webhook_drops_non_json_body() -> None:
    client, router = _client()
    with client:
        resp = client.post("/webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 200
    assert router.payloads == []


def test_health() -> None:
    client, _ = _client()
    with client:
        assert client.get("/health").json() == {"ok": True}
