"""
Tests for the boekingsregels API

Tests cover:
- Create with automatic BTW amount, periode/jaar and account link
- Blocking validation errors and non-blocking warnings
- List filters and totals
- Update recalculates the BTW amount
- Validation without saving
- Excel import and export
- Booking a purchase invoice from an image (OCR mocked)
- Validation warnings of saved invoice lines are returned
"""
import pytest
import uuid
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook

from app.api.v1 import boekingsregels as boekingsregels_api
from app.services.invoice_ocr import InvoiceOcrError


XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

INVOICE_TEXT = (
    "JANSEN KANTOORARTIKELEN B.V.\n"
    "Factuurnummer: F2026-0042\n"
    "Factuurdatum: 15-03-2026\n"
    "Subtotaal: € 100,00\n"
    "BTW 21%: € 21,00\n"
    "Totaal te betalen: € 121,00"
)


def url(client_id, suffix=""):
    return f"/api/v1/clients/{client_id}/boekingsregels{suffix}"


async def create_regel(async_client, headers, client_id, **fields):
    payload = {"boekdatum": "2026-03-15", "omschrijving": "Boeking", **fields}
    response = await async_client.post(url(client_id), headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["regel"]


class TestCreate:
    """Tests for POST /boekingsregels."""

    @pytest.mark.asyncio
    async def test_btw_amount_is_calculated(self, async_client, auth_headers, test_client, test_accounts):
        omzet_id = str(test_accounts[3].id)

        response = await async_client.post(url(test_client.id), headers=auth_headers, json={
            "boekdatum": "2026-03-15",
            "account_number": "8000",
            "omschrijving": "Verkoop brood",
            "credit": "100.00",
            "btw_code": "1A",
            "factuurnummer": "VF-2026-001",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["warnings"] == []
        regel = data["regel"]
        assert Decimal(regel["btw_bedrag"]) == Decimal("21.00")
        assert regel["btw_code"] == "1a"
        assert regel["periode"] == 3
        assert regel["jaar"] == 2026
        assert regel["grootboek_account_id"] == omzet_id
        assert regel["is_validated"] is True

    @pytest.mark.asyncio
    async def test_wrong_amount_is_a_warning(self, async_client, auth_headers, test_client, test_accounts):
        response = await async_client.post(url(test_client.id), headers=auth_headers, json={
            "boekdatum": "2026-03-20",
            "account_number": "4300",
            "omschrijving": "Printerpapier",
            "debet": "100.00",
            "btw_code": "5b",
            "btw_bedrag": "20.00",
        })

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["regel"]["btw_bedrag"]) == Decimal("20.00")
        assert len(data["warnings"]) == 1
        assert "Verwacht: €21.00, ingevoerd: €20.00" in data["warnings"][0]

    @pytest.mark.asyncio
    async def test_debet_and_credit_is_refused(self, async_client, auth_headers, test_client):
        response = await async_client.post(url(test_client.id), headers=auth_headers, json={
            "boekdatum": "2026-03-15",
            "account_number": "1100",
            "omschrijving": "Fout",
            "debet": "10.00",
            "credit": "10.00",
        })

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "VALIDATION_FAILED"
        assert "niet zowel debet als credit" in detail["message"]

    @pytest.mark.asyncio
    async def test_unknown_code_is_refused(self, async_client, auth_headers, test_client):
        response = await async_client.post(url(test_client.id), headers=auth_headers, json={
            "boekdatum": "2026-03-15",
            "account_number": "4300",
            "omschrijving": "Fout",
            "debet": "10.00",
            "btw_code": "9z",
        })

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "Ongeldige BTW-code: 9z"

    @pytest.mark.asyncio
    async def test_account_outside_grootboek(self, async_client, auth_headers, test_client):
        """Rules may refer to accounts that are not in the grootboek (yet)."""
        regel = await create_regel(
            async_client, auth_headers, test_client.id, account_number="0500", debet="10.00"
        )

        assert regel["grootboek_account_id"] is None

    @pytest.mark.asyncio
    async def test_negative_amount(self, async_client, auth_headers, test_client):
        response = await async_client.post(url(test_client.id), headers=auth_headers, json={
            "boekdatum": "2026-03-15",
            "account_number": "4300",
            "omschrijving": "Fout",
            "debet": "-10.00",
        })

        assert response.status_code == 422


class TestListAndUpdate:
    """Tests for listing, reading, updating and deleting."""

    @pytest.mark.asyncio
    async def test_filters_and_stats(self, async_client, auth_headers, test_client, test_accounts):
        client_id = test_client.id
        await create_regel(async_client, auth_headers, client_id,
                           account_number="8000", omschrijving="Verkoop", credit="100.00", btw_code="1a")
        await create_regel(async_client, auth_headers, client_id, boekdatum="2026-03-20",
                           account_number="4300", omschrijving="Papier", debet="50.00", btw_code="5b")
        await create_regel(async_client, auth_headers, client_id, boekdatum="2026-04-01",
                           account_number="1100", omschrijving="Storting", debet="121.00")

        march = await async_client.get(url(client_id), headers=auth_headers, params={"jaar": 2026, "periode": 3})
        search = await async_client.get(url(client_id), headers=auth_headers, params={"search": "verkoop"})
        by_code = await async_client.get(url(client_id), headers=auth_headers, params={"btw_code": "5B"})
        everything = await async_client.get(url(client_id), headers=auth_headers)

        data = march.json()
        assert [r["omschrijving"] for r in data["regels"]] == ["Papier", "Verkoop"]
        stats = data["stats"]
        assert stats["count"] == 2
        assert Decimal(stats["total_debet"]) == Decimal("50.00")
        assert Decimal(stats["total_credit"]) == Decimal("100.00")
        assert Decimal(stats["total_btw"]) == Decimal("31.50")
        assert Decimal(stats["verschil"]) == Decimal("-50.00")
        assert stats["with_btw"] == 2

        assert search.json()["stats"]["count"] == 1
        assert by_code.json()["stats"]["count"] == 1
        assert everything.json()["stats"]["without_btw"] == 1

    @pytest.mark.asyncio
    async def test_update_recalculates_btw(self, async_client, auth_headers, test_client, test_accounts):
        client_id = test_client.id
        regel = await create_regel(async_client, auth_headers, client_id,
                                   account_number="8000", credit="100.00", btw_code="1a")

        response = await async_client.put(
            url(client_id, f"/{regel['id']}"), headers=auth_headers, json={"credit": "200.00"}
        )

        assert response.status_code == 200
        updated = response.json()["regel"]
        assert Decimal(updated["credit"]) == Decimal("200.00")
        assert Decimal(updated["btw_bedrag"]) == Decimal("42.00")

    @pytest.mark.asyncio
    async def test_update_date_moves_period(self, async_client, auth_headers, test_client, test_accounts):
        client_id = test_client.id
        regel = await create_regel(async_client, auth_headers, client_id,
                                   account_number="8000", credit="100.00", btw_code="1a")

        response = await async_client.put(
            url(client_id, f"/{regel['id']}"), headers=auth_headers, json={"boekdatum": "2026-07-01"}
        )

        updated = response.json()["regel"]
        assert updated["periode"] == 7
        assert Decimal(updated["btw_bedrag"]) == Decimal("21.00")

    @pytest.mark.asyncio
    async def test_update_to_invalid_rule(self, async_client, auth_headers, test_client):
        client_id = test_client.id
        regel = await create_regel(async_client, auth_headers, client_id, account_number="1100", debet="10.00")

        response = await async_client.put(
            url(client_id, f"/{regel['id']}"), headers=auth_headers, json={"credit": "10.00"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_and_delete(self, async_client, auth_headers, test_client):
        client_id = test_client.id
        regel = await create_regel(async_client, auth_headers, client_id, account_number="1100", debet="10.00")

        found = await async_client.get(url(client_id, f"/{regel['id']}"), headers=auth_headers)
        deleted = await async_client.delete(url(client_id, f"/{regel['id']}"), headers=auth_headers)
        missing = await async_client.get(url(client_id, f"/{regel['id']}"), headers=auth_headers)

        assert found.status_code == 200
        assert deleted.status_code == 204
        assert missing.status_code == 404
        assert missing.json()["detail"]["code"] == "BOEKINGSREGEL_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unknown_id(self, async_client, auth_headers, test_client):
        response = await async_client.get(url(test_client.id, f"/{uuid.uuid4()}"), headers=auth_headers)

        assert response.status_code == 404


class TestValidate:
    """Tests for the dry-run validation."""

    @pytest.mark.asyncio
    async def test_validate(self, async_client, auth_headers, test_client):
        response = await async_client.post(url(test_client.id, "/validate"), headers=auth_headers, json={
            "debet": "100.00",
            "btw_code": "1a",
            "btw_bedrag": "21.00",
            "account_type": "kosten",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert "Verschuldigd BTW staat meestal op de credit kant (omzet)" in data["warnings"]

    @pytest.mark.asyncio
    async def test_validate_nothing(self, async_client, auth_headers, test_client):
        response = await async_client.post(url(test_client.id, "/validate"), headers=auth_headers, json={})

        data = response.json()
        assert data["is_valid"] is False
        assert data["errors"] == ["Een boekingsregel moet debet of credit hebben"]


class TestImportExport:
    """Tests for the Excel import and export."""

    @pytest.mark.asyncio
    async def test_import(self, async_client, auth_headers, test_client, test_accounts, make_xlsx):
        client_id = test_client.id
        content = make_xlsx([
            ["Datum", "Grootboeknummer", "Omschrijving", "Debet", "Credit", "BTW Code"],
            ["15-03-2026", "8000", "Verkoop", "", "100,00", "1a"],
            ["16-03-2026", "4300", "Papier", "24,20", "", "5b"],
            ["17-03-2026", "4300", "Dubbel", "10", "10", ""],
            ["18-03-2026", "4300", "Foute code", "10", "", "9z"],
        ])

        response = await async_client.post(
            url(client_id, "/import"),
            headers=auth_headers,
            files={"file": ("boekingen.xlsx", content, XLSX)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["imported"] == 2
        assert data["failed"] == 2
        assert data["errors"] == [
            "Rij 4: Zowel debet als credit zijn ingevuld",
            "18-03-2026 Foute code: Ongeldige BTW-code: 9z",
        ]

        listed = await async_client.get(url(client_id), headers=auth_headers)
        regels = {r["omschrijving"]: r for r in listed.json()["regels"]}
        assert Decimal(regels["Verkoop"]["btw_bedrag"]) == Decimal("21.00")
        assert Decimal(regels["Papier"]["btw_bedrag"]) == Decimal("5.08")
        assert regels["Papier"]["periode"] == 3

    @pytest.mark.asyncio
    async def test_import_without_rows(self, async_client, auth_headers, test_client, make_xlsx):
        content = make_xlsx([["Datum", "Grootboeknummer", "Omschrijving", "Debet", "Credit"]])

        response = await async_client.post(
            url(test_client.id, "/import"),
            headers=auth_headers,
            files={"file": ("boekingen.xlsx", content, XLSX)},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_FILE"

    @pytest.mark.asyncio
    async def test_export(self, async_client, auth_headers, test_client, test_accounts):
        client_id = test_client.id
        await create_regel(async_client, auth_headers, client_id,
                           account_number="8000", omschrijving="Verkoop", credit="100.00", btw_code="1a")

        response = await async_client.get(url(client_id, "/export"), headers=auth_headers, params={"jaar": 2026})

        assert response.status_code == 200
        assert 'filename="Boekingsregels-bakkerij-de-vries-' in response.headers["content-disposition"]
        ws = load_workbook(BytesIO(response.content)).active
        periode = [row for row in ws.iter_rows(values_only=True) if row[0] == "Periode:"]
        assert periode[0][1] == "2026"


class TestInvoice:
    """Tests for booking a purchase invoice."""

    @pytest.mark.asyncio
    async def test_proposal_only(self, async_client, auth_headers, test_client, monkeypatch):
        monkeypatch.setattr(boekingsregels_api, "extract_text", lambda content: INVOICE_TEXT)

        response = await async_client.post(
            url(test_client.id, "/invoice"),
            headers=auth_headers,
            files={"file": ("factuur.png", b"afbeelding", "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["invoice"]["invoice_number"] == "F2026-0042"
        assert Decimal(data["invoice"]["total_amount"]) == Decimal("121.00")
        assert [r["account_number"] for r in data["regels"]] == ["4300", "1900", "2000"]
        assert data["saved"] == []

    @pytest.mark.asyncio
    async def test_save(self, async_client, auth_headers, test_client, test_accounts, monkeypatch):
        client_id = test_client.id
        kosten_id = str(test_accounts[2].id)
        monkeypatch.setattr(boekingsregels_api, "extract_text", lambda content: INVOICE_TEXT)

        response = await async_client.post(
            url(client_id, "/invoice"),
            headers=auth_headers,
            files={"file": ("factuur.png", b"afbeelding", "image/png")},
            data={"save": "true"},
        )

        assert response.status_code == 200
        saved = response.json()["saved"]
        assert len(saved) == 3
        kosten, btw, betaling = saved
        assert kosten["grootboek_account_id"] == kosten_id
        assert Decimal(kosten["debet"]) == Decimal("100.00")
        assert Decimal(kosten["btw_bedrag"]) == Decimal("0.00")
        assert kosten["relatie"] == "JANSEN KANTOORARTIKELEN B.V."
        assert Decimal(btw["btw_bedrag"]) == Decimal("21.00")
        assert Decimal(betaling["credit"]) == Decimal("121.00")
        assert {r["periode"] for r in saved} == {3}
        assert response.json()["warnings"] == []

        listed = await async_client.get(url(client_id), headers=auth_headers)
        assert listed.json()["stats"]["count"] == 3
        assert Decimal(listed.json()["stats"]["verschil"]) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_save_returns_validation_warnings(
        self, async_client, auth_headers, test_client, test_accounts, monkeypatch
    ):
        """Booking the cost line on an omzet account is saved with a warning."""
        monkeypatch.setattr(boekingsregels_api, "extract_text", lambda content: INVOICE_TEXT)

        response = await async_client.post(
            url(test_client.id, "/invoice"),
            headers=auth_headers,
            files={"file": ("factuur.png", b"afbeelding", "image/png")},
            data={"save": "true", "expense_account": "8000"},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["saved"]) == 3
        assert data["warnings"] == [
            "8000: Omzet rekening met voorbelasting code - controleer of dit correct is"
        ]

    @pytest.mark.asyncio
    async def test_ocr_failure(self, async_client, auth_headers, test_client, monkeypatch):
        def fail(content):
            raise InvoiceOcrError("Alleen afbeeldingen worden ondersteund.")

        monkeypatch.setattr(boekingsregels_api, "extract_text", fail)

        response = await async_client.post(
            url(test_client.id, "/invoice"),
            headers=auth_headers,
            files={"file": ("factuur.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "OCR_FAILED"

    @pytest.mark.asyncio
    async def test_no_total_found(self, async_client, auth_headers, test_client, monkeypatch):
        monkeypatch.setattr(boekingsregels_api, "extract_text", lambda content: "Bedankt voor uw bestelling")

        response = await async_client.post(
            url(test_client.id, "/invoice"),
            headers=auth_headers,
            files={"file": ("factuur.png", b"afbeelding", "image/png")},
            data={"save": "true"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "NO_TOTAL_FOUND"
