"""
Tests for the table export workbook and the admin-protected export endpoint.
"""

import io
import os
from unittest.mock import patch

import openpyxl
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.table import SchemaColumn
from app.routers.tables import get_tabular_store
from app.services.table_export import generate_table_export


def _load(content: bytes):
    return openpyxl.load_workbook(io.BytesIO(content)).active


def _values(ws) -> list[list[str]]:
    return [[c if c is not None else "" for c in row] for row in ws.iter_rows(values_only=True)]


class TestGenerateTableExport:

    def test_header_and_rows(self):
        content = generate_table_export(
            "acme#contact",
            [SchemaColumn("Name"), SchemaColumn("Email")],
            [["Ana", "ana@x.com"], ["Bea", "bea@x.com"]],
        )
        ws = _load(content)
        assert _values(ws) == [["Name", "Email"], ["Ana", "ana@x.com"], ["Bea", "bea@x.com"]]
        assert ws["A1"].font.bold
        assert ws.freeze_panes == "A2"

    def test_rows_older_than_a_column_are_padded(self):
        content = generate_table_export(
            "acme#contact",
            [SchemaColumn("Name"), SchemaColumn("Email"), SchemaColumn("Phone")],
            [["Ana"], ["Bea", "bea@x.com", "'+34600111222"]],
        )
        ws = _load(content)
        assert ws.max_column == 3
        assert _values(ws)[1] == ["Ana", "", ""]
        assert ws["C3"].value == "'+34600111222"

    def test_sheet_title_is_sanitized(self):
        ws = _load(generate_table_export("acme/contact:" + "x" * 40, [SchemaColumn("Name")], []))
        assert ws.title.startswith("acme_contact_")
        assert len(ws.title) == 31

    def test_empty_table(self):
        ws = _load(generate_table_export("acme#contact", [SchemaColumn("Name")], []))
        assert _values(ws) == [["Name"]]


class TestExportEndpoint:

    @pytest.fixture()
    def client(self, tabular_store):
        app.dependency_overrides[get_tabular_store] = lambda: tabular_store
        yield TestClient(app)
        app.dependency_overrides.clear()

    @pytest.fixture()
    def populated(self, tabular_store):
        tabular_store.columns["acme#contact"] = [SchemaColumn("Name"), SchemaColumn("Email")]
        tabular_store.rows["acme#contact"] = [["Ana", "ana@x.com"]]
        return tabular_store

    def test_download(self, client, populated):
        with patch.dict(os.environ, {"ADMIN_API_KEY": "secret"}):
            response = client.get("/api/tables/acme%23contact/export", headers={"X-Admin-Key": "secret"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert 'filename="acme_contact.xlsx"' in response.headers["content-disposition"]
        assert _values(_load(response.content)) == [["Name", "Email"], ["Ana", "ana@x.com"]]

    def test_unknown_table_is_404(self, client, populated):
        with patch.dict(os.environ, {"ADMIN_API_KEY": "secret"}):
            response = client.get("/api/tables/acme%23missing/export", headers={"X-Admin-Key": "secret"})
        assert response.status_code == 404

    def test_wrong_key_is_401(self, client, populated):
        with patch.dict(os.environ, {"ADMIN_API_KEY": "secret"}):
            response = client.get("/api/tables/acme%23contact/export", headers={"X-Admin-Key": "nope"})
        assert response.status_code == 401

    def test_unconfigured_key_rejects_everything(self, client, populated):
        with patch.dict(os.environ, {"ADMIN_API_KEY": ""}):
            response = client.get("/api/tables/acme%23contact/export", headers={"X-Admin-Key": ""})
        assert response.status_code == 401
