import pytest
from sqlalchemy import func, select

from conftest import seed_network
from models.travel_bill import TravelBillRequest

BASE = "/travel-bill"


def bill_form(**overrides):
    data = {"travelDate": "2025-03-09", "comments": "Taxi to factory audit", "shopifyCustomerId": "5001", "amount": "42.50"}
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_submit_with_receipt(client, session_factory, travel_bill_store):
    ids = await seed_network(session_factory)

    resp = await client.post(
        f"{BASE}/upload-travel-bill",
        data=bill_form(),
        files={"billFile": ("taxi receipt.jpg", b"\xff\xd8\xff\xe0receipt", "image/jpeg")},
    )

    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == "Travel bill submitted successfully"
    bill_id = resp.json()["travelBillId"]
    key = next(iter(travel_bill_store.objects))
    assert key.startswith("March/09/travel_")
    assert key.endswith("_taxi_receipt.jpg")

    resp = await client.get(f"{BASE}/travel-bills", params={"shopifyCustomerId": "5001"})
    bills = resp.json()["bills"]
    assert len(bills) == 1
    assert bills[0]["id"] == bill_id
    assert bills[0]["organization_member_id"] == str(ids["buyer_member_id"])
    assert bills[0]["travel_bill_url"] == key
    assert bills[0]["amount"] == 42.5
    assert bills[0]["status"] == "pending"


@pytest.mark.asyncio
async def test_submit_without_receipt(client, session_factory, travel_bill_store):
    await seed_network(session_factory)

    resp = await client.post(f"{BASE}/upload-travel-bill", data=bill_form())

    assert resp.status_code == 200, resp.text
    assert travel_bill_store.uploads == []
    async with session_factory() as session:
        bill = (await session.execute(select(TravelBillRequest))).scalar_one()
    assert str(bill.id) == resp.json()["travelBillId"]
    assert bill.travel_bill_url is None


@pytest.mark.asyncio
async def test_unknown_member_writes_nothing(client, session_factory, travel_bill_store):
    await seed_network(session_factory)

    resp = await client.post(
        f"{BASE}/upload-travel-bill",
        data=bill_form(shopifyCustomerId="0000"),
        files={"billFile": ("r.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert resp.status_code == 404
    assert resp.json()["error"] == "Organization member not found"
    assert travel_bill_store.uploads == []


@pytest.mark.asyncio
async def test_amount_must_be_positive(client, session_factory):
    await seed_network(session_factory)

    resp = await client.post(f"{BASE}/upload-travel-bill", data=bill_form(amount="0"))

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid fields: amount"
    async with session_factory() as session:
        count = (await session.execute(select(func.count()).select_from(TravelBillRequest))).scalar_one()
    assert count == 0
