"""
Tests for saved column mappings and the upload history

Tests cover:
- Saving, replacing by name, listing and deleting mappings
- Only the most recently used mappings per upload type are kept
- Mappings of other bookkeepers are invisible
- Imports with a saved mapping; mapping of the wrong import type
- Upload history per client
"""
import pytest
import uuid

from app.core.config import settings
from app.models import ColumnMapping


XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXACT_MAPPING = {"Nr": "account_number", "Naam rekening": "account_name", "Soort": "account_type"}


async def save_mapping(async_client, headers, name, upload_type="grootboek", mapping=None):
    response = await async_client.post("/api/v1/mappings", headers=headers, json={
        "name": name,
        "upload_type": upload_type,
        "mapping": mapping or EXACT_MAPPING,
    })
    assert response.status_code == 201, response.text
    return response.json()


class TestMappings:
    """Tests for the mapping endpoints."""

    @pytest.mark.asyncio
    async def test_save_and_list(self, async_client, auth_headers):
        saved = await save_mapping(async_client, auth_headers, " Exact export ")

        response = await async_client.get("/api/v1/mappings", headers=auth_headers)

        assert saved["name"] == "Exact export"
        assert saved["mapping"] == EXACT_MAPPING
        assert [m["id"] for m in response.json()] == [saved["id"]]

    @pytest.mark.asyncio
    async def test_same_name_replaces(self, async_client, auth_headers):
        first = await save_mapping(async_client, auth_headers, "Exact export")
        second = await save_mapping(async_client, auth_headers, "Exact export", mapping={"Nummer": "account_number"})

        response = await async_client.get("/api/v1/mappings", headers=auth_headers)

        assert second["id"] == first["id"]
        assert second["mapping"] == {"Nummer": "account_number"}
        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_filter_by_upload_type(self, async_client, auth_headers):
        await save_mapping(async_client, auth_headers, "Grootboek")
        await save_mapping(async_client, auth_headers, "Boekingen", upload_type="boekingsregels",
                           mapping={"Dag": "boekdatum"})

        response = await async_client.get(
            "/api/v1/mappings", headers=auth_headers, params={"upload_type": "boekingsregels"}
        )

        assert [m["name"] for m in response.json()] == ["Boekingen"]

    @pytest.mark.asyncio
    async def test_least_recently_used_is_dropped(self, async_client, auth_headers):
        for i in range(settings.MAX_SAVED_MAPPINGS + 1):
            await save_mapping(async_client, auth_headers, f"Indeling {i}")

        response = await async_client.get("/api/v1/mappings", headers=auth_headers)

        names = [m["name"] for m in response.json()]
        assert len(names) == settings.MAX_SAVED_MAPPINGS
        assert "Indeling 0" not in names
        assert names[0] == f"Indeling {settings.MAX_SAVED_MAPPINGS}"

    @pytest.mark.asyncio
    async def test_use_moves_mapping_to_front(self, async_client, auth_headers):
        oldest = await save_mapping(async_client, auth_headers, "Oud")
        await save_mapping(async_client, auth_headers, "Nieuw")

        used = await async_client.post(f"/api/v1/mappings/{oldest['id']}/use", headers=auth_headers)
        response = await async_client.get("/api/v1/mappings", headers=auth_headers)

        assert used.status_code == 200
        assert [m["name"] for m in response.json()] == ["Oud", "Nieuw"]

    @pytest.mark.asyncio
    async def test_delete(self, async_client, auth_headers):
        saved = await save_mapping(async_client, auth_headers, "Weg ermee")

        deleted = await async_client.delete(f"/api/v1/mappings/{saved['id']}", headers=auth_headers)
        again = await async_client.delete(f"/api/v1/mappings/{saved['id']}", headers=auth_headers)

        assert deleted.status_code == 204
        assert again.status_code == 404
        assert again.json()["detail"]["code"] == "MAPPING_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_other_bookkeepers_mapping(self, async_client, auth_headers, db_session, other_user):
        mapping = ColumnMapping(
            id=uuid.uuid4(), user_id=other_user.id, name="Privé", upload_type="grootboek", mapping=EXACT_MAPPING,
        )
        db_session.add(mapping)
        await db_session.commit()

        used = await async_client.post(f"/api/v1/mappings/{mapping.id}/use", headers=auth_headers)
        listed = await async_client.get("/api/v1/mappings", headers=auth_headers)

        assert used.status_code == 404
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_invalid_payload(self, async_client, auth_headers):
        response = await async_client.post("/api/v1/mappings", headers=auth_headers, json={
            "name": "Leeg", "upload_type": "klanten", "mapping": {},
        })

        assert response.status_code == 422


class TestImportWithSavedMapping:
    """Tests for imports that refer to a saved mapping."""

    @pytest.mark.asyncio
    async def test_grootboek_import(self, async_client, auth_headers, test_client, make_xlsx):
        saved = await save_mapping(async_client, auth_headers, "Exact export")
        content = make_xlsx([["Nr", "Naam rekening", "Soort"], ["1000", "Kas", "Activa"], ["1100", "Bank", "Activa"]])

        response = await async_client.post(
            f"/api/v1/clients/{test_client.id}/grootboek/import",
            headers=auth_headers,
            files={"file": ("export.xlsx", content, XLSX)},
            data={"mapping_id": saved["id"]},
        )

        assert response.status_code == 200
        assert response.json()["imported"] == 2

    @pytest.mark.asyncio
    async def test_wrong_upload_type(self, async_client, auth_headers, test_client, make_xlsx):
        saved = await save_mapping(async_client, auth_headers, "Exact export")
        content = make_xlsx([["Datum", "Grootboeknummer", "Omschrijving", "Debet"], ["01-01-2026", "1100", "X", "1"]])

        response = await async_client.post(
            f"/api/v1/clients/{test_client.id}/boekingsregels/import",
            headers=auth_headers,
            files={"file": ("boekingen.xlsx", content, XLSX)},
            data={"mapping_id": saved["id"]},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_MAPPING"

    @pytest.mark.asyncio
    async def test_unknown_mapping(self, async_client, auth_headers, test_client, make_xlsx):
        content = make_xlsx([["Grootboeknummer", "Omschrijving", "Categorie"], ["1000", "Kas", "Activa"]])

        response = await async_client.post(
            f"/api/v1/clients/{test_client.id}/grootboek/import",
            headers=auth_headers,
            files={"file": ("export.xlsx", content, XLSX)},
            data={"mapping_id": str(uuid.uuid4())},
        )

        assert response.status_code == 404


class TestUploads:
    """Tests for the upload history."""

    @pytest.mark.asyncio
    async def test_history_newest_first(self, async_client, auth_headers, test_client, make_xlsx):
        client_id = test_client.id
        good = make_xlsx([["Grootboeknummer", "Omschrijving", "Categorie"], ["1000", "Kas", "Activa"]])

        await async_client.post(
            f"/api/v1/clients/{client_id}/grootboek/import",
            headers=auth_headers,
            files={"file": ("eerste.xlsx", good, XLSX)},
        )
        await async_client.post(
            f"/api/v1/clients/{client_id}/grootboek/import",
            headers=auth_headers,
            files={"file": ("tweede.xlsx", b"kapot", XLSX)},
        )

        response = await async_client.get(f"/api/v1/clients/{client_id}/uploads", headers=auth_headers)

        assert response.status_code == 200
        logs = response.json()
        assert {(log["file_name"], log["status"]) for log in logs} == {
            ("eerste.xlsx", "completed"),
            ("tweede.xlsx", "failed"),
        }

    @pytest.mark.asyncio
    async def test_other_bookkeepers_client(self, async_client, auth_headers, other_client):
        response = await async_client.get(f"/api/v1/clients/{other_client.id}/uploads", headers=auth_headers)

        assert response.status_code == 404
