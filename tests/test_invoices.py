"""Tests for invoice numbering and generation"""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from apps.invoices import sequence
from apps.invoices.pdf import (
    InvoiceDocument,
    InvoiceLine,
    IssuerDetails,
    format_amount,
    layout_invoice_pages,
    parse_detail_rows,
    render_invoice_pdf,
)
from apps.invoices.service import InvoiceService
from conftest import seed_network, seed_series
from models.invoice import ConsultancyInvoice

BASE = "/proxy/consultancy"


def invoice_payload(buyer_id, invoice_no, mode="system", **overrides):
    payload = {
        "invoiceMode": mode,
        "invoiceNo": invoice_no,
        "invoiceDate": "2025-06-20",
        "buyer": {
            "id": str(buyer_id),
            "name": "B1",
            "address": "1 Harbour Road\nSingapore 098632",
            "country": "Singapore",
        },
        "lineItems": [
            {"srNo": 1, "description": "Sourcing consultancy", "purposeCode": "P1006", "total": "1500.00"},
            {"srNo": 2, "description": "Quality inspection", "purposeCode": "P1006", "total": "250.00"},
        ],
        "currency": "USD",
        "shopifyCustomerId": "5001",
    }
    payload.update(overrides)
    return payload


async def current_number(session_factory, buyer_org_id):
    async with session_factory() as session:
        series = await sequence.get_series(session, buyer_org_id)
        return series.current_number


async def invoice_count(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(ConsultancyInvoice))).scalar_one()


class TestInvoiceNumberFormat:
    def test_format_pads_to_three_digits(self):
        assert sequence.format_invoice_number("ACME", 7, "FY25") == "ACME-007N-FY25"
        assert sequence.format_invoice_number("ACME", 1234, "FY25") == "ACME-1234N-FY25"

    def test_parse_sequence(self):
        assert sequence.parse_sequence("ACME-010N-FY25") == 10
        assert sequence.parse_sequence("ACME-1234N-FY25") == 1234
        assert sequence.parse_sequence("INV-2025-01") is None
        assert sequence.parse_sequence("") is None


class TestNextInvoiceNumber:
    @pytest.mark.asyncio
    async def test_requires_buyer_id(self, client):
        resp = await client.get(f"{BASE}/next-invoice-number")

        assert resp.status_code == 400
        assert resp.json()["error"] == "buyerId required"

    @pytest.mark.asyncio
    async def test_unknown_series(self, client):
        resp = await client.get(f"{BASE}/next-invoice-number", params={"buyerId": str(uuid.uuid4())})

        assert resp.status_code == 200
        assert resp.json() == {"initialized": False, "prefix": None}

    @pytest.mark.asyncio
    async def test_uninitialized_series(self, client, session_factory):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=0, initialized=False)

        resp = await client.get(f"{BASE}/next-invoice-number", params={"buyerId": str(ids["buyer_org_id"])})

        assert resp.json() == {"initialized": False, "prefix": "ACME", "financial_year": "FY25"}

    @pytest.mark.asyncio
    async def test_peek_does_not_consume(self, client, session_factory):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        for _ in range(2):
            resp = await client.get(f"{BASE}/next-invoice-number", params={"buyerId": str(ids["buyer_org_id"])})
            assert resp.json()["invoiceNo"] == "ACME-006N-FY25"
        assert await current_number(session_factory, ids["buyer_org_id"]) == 5


class TestGenerateInvoice:
    @pytest.mark.asyncio
    async def test_sequential_system_invoices_have_no_gaps(self, client, session_factory, invoice_store):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        issued = []
        for _ in range(3):
            peek = await client.get(f"{BASE}/next-invoice-number", params={"buyerId": str(ids["buyer_org_id"])})
            invoice_no = peek.json()["invoiceNo"]
            resp = await client.post(f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], invoice_no))
            assert resp.status_code == 200, resp.text
            assert "warnings" not in resp.json()
            issued.append(invoice_no)

        assert issued == ["ACME-006N-FY25", "ACME-007N-FY25", "ACME-008N-FY25"]
        assert [sequence.parse_sequence(n) for n in issued] == [6, 7, 8]
        assert await current_number(session_factory, ids["buyer_org_id"]) == 8

        async with session_factory() as session:
            rows = list((await session.execute(select(ConsultancyInvoice))).scalars().all())
        assert sorted(r.sequence_number for r in rows) == [6, 7, 8]
        assert all(r.amount == Decimal("1750.00") for r in rows)
        assert all(r.created_by == ids["buyer_member_id"] for r in rows)
        assert len(invoice_store.objects) == 3
        assert all(data.startswith(b"%PDF") for data in invoice_store.objects.values())

    @pytest.mark.asyncio
    async def test_response_carries_download_url(self, client, session_factory, invoice_store):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-006N-FY25")
        )

        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Invoice generated successfully."
        uuid.UUID(body["invoiceId"])
        key = next(iter(invoice_store.objects))
        assert key.startswith("invoices/ACME-006N-FY25_")
        assert body["downloadUrl"] == f"https://files.test/invoice-documents/{key}"

    @pytest.mark.asyncio
    async def test_skipped_number_rejected(self, client, session_factory, invoice_store):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-007N-FY25")
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invoice number mismatch. Expected ACME-006N-FY25"
        assert await current_number(session_factory, ids["buyer_org_id"]) == 5
        assert invoice_store.uploads == []
        assert await invoice_count(session_factory) == 0

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-006N-FY25")
        )
        assert resp.status_code == 200
        assert await current_number(session_factory, ids["buyer_org_id"]) == 6

    @pytest.mark.asyncio
    async def test_manual_number_catches_series_up(self, client, session_factory):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        resp = await client.post(
            f"{BASE}/generate-invoice",
            json=invoice_payload(ids["buyer_org_id"], "ACME-010N-FY25", mode="manual"),
        )
        assert resp.status_code == 200, resp.text

        resp = await client.get(f"{BASE}/next-invoice-number", params={"buyerId": str(ids["buyer_org_id"])})
        assert resp.json()["invoiceNo"] == "ACME-011N-FY25"

    @pytest.mark.asyncio
    async def test_manual_number_never_moves_series_back(self, client, session_factory):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        resp = await client.post(
            f"{BASE}/generate-invoice",
            json=invoice_payload(ids["buyer_org_id"], "ACME-003N-FY25", mode="manual"),
        )

        assert resp.status_code == 200
        assert await current_number(session_factory, ids["buyer_org_id"]) == 5

    @pytest.mark.asyncio
    async def test_manual_number_initializes_series(self, client, session_factory):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=0, initialized=False)

        resp = await client.post(
            f"{BASE}/generate-invoice",
            json=invoice_payload(ids["buyer_org_id"], "ACME-004N-FY25", mode="manual"),
        )
        assert resp.status_code == 200

        async with session_factory() as session:
            series = await sequence.get_series(session, ids["buyer_org_id"])
        assert series.initialized is True
        assert series.current_number == 4

    @pytest.mark.asyncio
    async def test_duplicate_number_rejected_without_side_effects(self, client, session_factory, invoice_store):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)
        async with session_factory() as session:
            session.add(
                ConsultancyInvoice(
                    buyer_org_id=ids["buyer_org_id"],
                    invoice_number="ACME-006N-FY25",
                    invoice_date=date(2025, 6, 1),
                    amount=Decimal("10.00"),
                    currency="USD",
                    line_items=[],
                    invoice_mode="manual",
                    pdf_path="invoices/ACME-006N-FY25_1.pdf",
                )
            )
            await session.commit()

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-006N-FY25")
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invoice number already exists."
        assert invoice_store.uploads == []
        assert await invoice_count(session_factory) == 1
        assert await current_number(session_factory, ids["buyer_org_id"]) == 5

    @pytest.mark.asyncio
    async def test_unique_constraint_backs_up_the_check(self, client, session_factory, invoice_store, monkeypatch):
        """A duplicate slipping past the read check is stopped by the constraint and its PDF removed"""
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)
        resp = await client.post(
            f"{BASE}/generate-invoice",
            json=invoice_payload(ids["buyer_org_id"], "INV-MANUAL-1", mode="manual"),
        )
        assert resp.status_code == 200

        async def never_exists(db, invoice_no):
            return False

        monkeypatch.setattr(InvoiceService, "invoice_number_exists", staticmethod(never_exists))

        resp = await client.post(
            f"{BASE}/generate-invoice",
            json=invoice_payload(ids["buyer_org_id"], "INV-MANUAL-1", mode="manual"),
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invoice number already exists."
        assert len(invoice_store.uploads) == 2
        assert invoice_store.uploads[1] not in invoice_store.objects
        assert len(invoice_store.objects) == 1
        assert await invoice_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_series_not_configured(self, client, session_factory, invoice_store):
        ids = await seed_network(session_factory)

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-001N-FY25")
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invoice series not configured for this buyer."
        assert invoice_store.uploads == []

    @pytest.mark.asyncio
    async def test_system_mode_needs_initialized_series(self, client, session_factory):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=0, initialized=False)

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-001N-FY25")
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invoice series not initialized for this buyer."

    @pytest.mark.asyncio
    async def test_unknown_member_rejected(self, client, session_factory, invoice_store):
        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        resp = await client.post(
            f"{BASE}/generate-invoice",
            json=invoice_payload(ids["buyer_org_id"], "ACME-006N-FY25", shopifyCustomerId="0000"),
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Could not resolve member identity."
        assert invoice_store.uploads == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field, message",
        [
            ("invoiceNo", "Invoice number is required."),
            ("invoiceDate", "Invoice date is required."),
            ("buyer", "Buyer is required."),
            ("lineItems", "At least one line item is required."),
        ],
    )
    async def test_required_fields(self, client, session_factory, field, message):
        ids = await seed_network(session_factory)
        payload = invoice_payload(ids["buyer_org_id"], "ACME-006N-FY25")
        del payload[field]

        resp = await client.post(f"{BASE}/generate-invoice", json=payload)

        assert resp.status_code == 400
        assert resp.json()["error"] == message

    @pytest.mark.asyncio
    async def test_sequence_commit_failure_is_a_warning(self, client, session_factory, invoice_store, monkeypatch):
        from sqlalchemy.exc import OperationalError

        ids = await seed_network(session_factory)
        await seed_series(session_factory, ids["buyer_org_id"], current_number=5)

        async def failing_commit(db, buyer_org_id):
            raise OperationalError("UPDATE invoice_series", {}, Exception("database is locked"))

        monkeypatch.setattr(sequence, "commit", failing_commit)

        resp = await client.post(
            f"{BASE}/generate-invoice", json=invoice_payload(ids["buyer_org_id"], "ACME-006N-FY25")
        )

        assert resp.status_code == 200
        assert resp.json()["warnings"] == ["sequence_not_advanced"]
        assert await invoice_count(session_factory) == 1
        assert len(invoice_store.objects) == 1


def invoice_document(line_count=1):
    lines = [
        InvoiceLine(sr_no=n, description=f"Sourcing consultancy {n}", purpose_code="P1006", total=Decimal("1500"))
        for n in range(1, line_count + 1)
    ]
    return InvoiceDocument(
        invoice_no="ACME-006N-FY25",
        invoice_date=date(2025, 6, 20),
        buyer_name="B1",
        buyer_address="1 Harbour Road\nSingapore",
        buyer_country="Singapore",
        currency="USD",
        lines=lines,
        total_amount=Decimal("1500") * line_count,
        issuer=IssuerDetails(
            name="Acme Exports",
            address_lines=["12 Mill Street", "Tiruppur"],
            email="accounts@acme.test",
            bank_rows=[("BANK", "HSBC"), ("SWIFT", "HSBCSGSG")],
        ),
    )


class TestInvoicePdf:
    def test_detail_rows(self):
        rows = parse_detail_rows("Bank: HSBC Singapore\nSWIFT: HSBCSGSG\n\nPay within 30 days")

        assert rows == [("BANK", "HSBC Singapore"), ("SWIFT", "HSBCSGSG"), ("", "Pay within 30 days")]

    def test_format_amount(self):
        assert format_amount(Decimal("1234.5")) == "1,234.50"
        assert format_amount(None) == "0.00"

    def test_render_produces_pdf(self):
        data = render_invoice_pdf(invoice_document())

        assert data.startswith(b"%PDF")
        assert len(data) > 1000

    def test_short_invoice_is_one_page(self):
        assert len(layout_invoice_pages(invoice_document(line_count=3))) == 1

    def test_long_item_list_continues_on_new_pages(self):
        doc = invoice_document(line_count=60)

        pages = layout_invoice_pages(doc)

        # 60 rows of 30pt cannot fit on fewer than three A4 pages
        assert len(pages) >= 3
        assert render_invoice_pdf(doc).startswith(b"%PDF")
