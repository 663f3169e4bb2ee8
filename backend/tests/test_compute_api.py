"""Stateless compute API tests."""

from __future__ import annotations

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.api.routes.compute import router as compute_router

HEADERS = {"X-User-Id": "user-1"}


def _app() -> FastAPI:
    app = FastAPI()
    app.include_router(compute_router, prefix="/compute", tags=["compute"])
    return app


async def _post(path: str, payload: dict, headers: dict | None = None):
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(path, json=payload, headers=HEADERS if headers is None else headers)


async def test_zone_plan_redistributes_skipped_zone():
    payload = {
        "current_price": "150",
        "capital_total": "1000",
        "zones": [
            {"id": "a", "order": 1, "price_min": "200", "price_max": "300", "percentual_base": "25"},
            {"id": "b", "order": 2, "price_min": "50", "price_max": "100", "percentual_base": "25"},
            {"id": "c", "order": 3, "price_min": "100", "price_max": "200", "percentual_base": "50"},
        ],
    }

    response = await _post("/compute/zone-plan", payload)

    assert response.status_code == 200
    body = response.json()
    assert body["capital_unallocated"] is False
    assert [zone["status"] for zone in body["zones"]] == ["ATIVA", "PULADA", "ATIVA"]
    assert [zone["valor_usd"] for zone in body["zones"]] == ["333.33", "0.00", "666.67"]
    assert body["allocated_usd"] == "1000.00"


async def test_zone_plan_rejects_oversubscribed_zones():
    payload = {
        "current_price": "1",
        "capital_total": "100",
        "zones": [
            {"id": "a", "order": 1, "price_min": "1", "price_max": "2", "percentual_base": "70"},
            {"id": "b", "order": 2, "price_min": "0", "price_max": "1", "percentual_base": "40"},
        ],
    }

    response = await _post("/compute/zone-plan", payload)

    assert response.status_code == 422
    assert "above 100" in response.json()["detail"]


async def test_positions_with_capital():
    payload = {
        "symbols": {"usdt": "USDT", "btc": "BTC"},
        "transactions": [
            {
                "id": "d1",
                "type": "DEPOSIT",
                "timestamp": "2024-01-01T00:00:00Z",
                "base_asset_id": "usdt",
                "base_qty": "1000",
                "cost_basis_usd": "1000",
            },
            {
                "id": "b1",
                "type": "BUY",
                "timestamp": "2024-01-02T00:00:00Z",
                "base_asset_id": "btc",
                "base_qty": "0.01",
                "quote_asset_id": "usdt",
                "quote_qty": "500",
            },
        ],
    }

    response = await _post("/compute/positions", payload)

    assert response.status_code == 200
    body = response.json()
    assert body["capital_usd"] == "500.00"
    assert body["anomalies"] == []
    btc = next(p for p in body["positions"] if p["asset_id"] == "btc")
    assert btc["symbol"] == "BTC"
    assert btc["qty"] == "0.01000000"
    assert btc["cost_usd_total"] == "500.00"
    assert btc["avg_cost_usd"] == "50000.00000000"


async def test_positions_unsorted_input_is_rejected_unless_sort_requested():
    transactions = [
        {"id": "w1", "type": "WITHDRAW", "timestamp": "2024-01-02T00:00:00Z", "base_asset_id": "x", "base_qty": "1"},
        {"id": "d1", "type": "DEPOSIT", "timestamp": "2024-01-01T00:00:00Z", "base_asset_id": "x", "base_qty": "3"},
    ]

    rejected = await _post("/compute/positions", {"transactions": transactions})
    sorted_response = await _post("/compute/positions", {"transactions": transactions, "sort": True})

    assert rejected.status_code == 422
    assert sorted_response.status_code == 200
    assert sorted_response.json()["positions"][0]["qty"] == "2.00000000"


async def test_missing_user_context_is_unauthorized():
    response = await _post("/compute/zone-plan", {"current_price": "1", "capital_total": "1", "zones": []}, headers={})

    assert response.status_code == 401


async def test_internal_token_is_enforced_when_configured(monkeypatch):
    monkeypatch.setenv("INTERNAL_AUTH_TOKEN", "s3cret")
    payload = {
        "current_price": "1",
        "capital_total": "0",
        "zones": [{"id": "a", "order": 1, "price_min": "0", "price_max": "2", "percentual_base": "100"}],
    }

    denied = await _post("/compute/zone-plan", payload)
    allowed = await _post("/compute/zone-plan", payload, headers={**HEADERS, "X-Internal-Token": "s3cret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200


async def test_positions_rejects_negative_amounts():
    payload = {
        "transactions": [
            {
                "id": "s1",
                "type": "SELL",
                "timestamp": "2024-01-01T00:00:00Z",
                "base_asset_id": "eth",
                "base_qty": "-2",
                "quote_asset_id": "usdt",
                "quote_qty": "10",
            }
        ]
    }

    response = await _post("/compute/positions", payload)

    assert response.status_code == 422


async def test_positions_round_very_large_averages():
    payload = {
        "transactions": [
            {
                "id": "d1",
                "type": "DEPOSIT",
                "timestamp": "2024-01-01T00:00:00Z",
                "base_asset_id": "btc",
                "base_qty": "0.000000000000000001",
                "cost_basis_usd": "1000",
            }
        ]
    }

    response = await _post("/compute/positions", payload)

    assert response.status_code == 200
    position = response.json()["positions"][0]
    assert position["cost_usd_total"] == "1000.00"
    assert position["avg_cost_usd"] == "1000000000000000000000.00000000"
