"""
Tests for the generic CRUD router.

Tests cover:
- Search, distinct values, fields and lookups over HTTP
- Create, patch, delete
- CSV export download and CSV upload
- Error responses and the optional access hook
"""

import csv
import io

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import select

from crud_api.main import create_app
from crud_api.routers import build_crud_router, get_locale
from crud_api.services.crud import GenericTransformer
from crud_shared.config.constants import AccessPermission
from crud_shared.infrastructure.db import get_db
from tests.conftest import Article, ArticleDto, get_article_service, make_article

BASE = "/api/articles"


class TestGetLocale:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("es-AR,es;q=0.9,en;q=0.8", "es-AR"),
            ("fr;q=0.7", "fr"),
            ("*", "en"),
            (None, "en"),
            ("", "en"),
        ],
    )
    def test_first_tag_or_default(self, header, expected):
        assert get_locale(header) == expected


class TestReadEndpoints:
    @pytest.fixture(autouse=True)
    def seed(self, db_session):
        make_article(db_session, slug="alpha", title="Alpha", status="DRAFT", price=1)
        make_article(db_session, slug="beta", title="Beta", status="PUBLISHED", price=2)
        make_article(db_session, slug="gamma", title="Gamma", status="DRAFT", price=3)

    def test_search_returns_page(self, client):
        response = client.post(
            f"{BASE}/search",
            json={
                "page": 0,
                "size": 2,
                "filterModel": {"status": {"filterType": "set", "values": ["DRAFT"]}},
                "sortModel": [{"colId": "price", "sort": "desc"}],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["totalElements"] == 2
        assert data["totalPages"] == 1
        assert [item["slug"] for item in data["content"]] == ["gamma", "alpha"]

    def test_search_requires_page_and_size(self, client):
        response = client.post(f"{BASE}/search", json={"filterModel": {}})
        assert response.status_code == 400
        assert "X-Request-ID" in response.headers

    def test_search_rejects_malformed_filter(self, client):
        response = client.post(
            f"{BASE}/search",
            json={"page": 0, "size": 5, "filterModel": {"price": {"filterType": "number"}}},
        )
        assert response.status_code == 400
        assert "price" in response.json()["detail"]

    def test_search_rejects_unknown_filter_type(self, client):
        response = client.post(
            f"{BASE}/search",
            json={"page": 0, "size": 5, "filterModel": {"price": {"filterType": "regex"}}},
        )
        assert response.status_code == 422

    def test_distinct_values(self, client):
        response = client.post(f"{BASE}/column/master", params={"column": "status"}, json={})
        assert response.status_code == 200
        assert response.json() == [
            {"key": "", "label": ""},
            {"key": "DRAFT", "label": "DRAFT"},
            {"key": "PUBLISHED", "label": "PUBLISHED"},
        ]

    def test_distinct_values_without_body(self, client):
        response = client.post(f"{BASE}/column/master", params={"column": "nope"})
        assert response.status_code == 200
        assert response.json() == []

    def test_fields_follow_accept_language(self, client):
        response = client.get(f"{BASE}/all/fields", headers={"Accept-Language": "es-AR,es;q=0.9"})
        assert response.status_code == 200
        labels = {f["name"]: f["label"] for f in response.json()}
        assert labels["title"] == "Título"
        assert response.json()[0]["dataType"] == "text"

    def test_find_by_slug(self, client):
        response = client.get(f"{BASE}/beta")
        assert response.status_code == 200
        assert response.json()["title"] == "Beta"

    def test_find_by_slug_missing(self, client):
        response = client.get(f"{BASE}/nope", headers={"X-Request-ID": "req-42"})
        assert response.status_code == 404
        assert response.headers["X-Request-ID"] == "req-42"


class TestWriteEndpoints:
    def test_create(self, client):
        response = client.post(BASE, json={"title": "Created", "price": 4.5})

        assert response.status_code == 201
        data = response.json()
        assert data["slug"].startswith("ART")
        assert data["id"] is not None

    def test_create_duplicate_slug(self, client, db_session):
        make_article(db_session, slug="taken")
        response = client.post(BASE, json={"slug": "taken", "title": "Again"})
        assert response.status_code == 400

    def test_create_validates_body(self, client):
        response = client.post(BASE, json={"price": 1})
        assert response.status_code == 422

    def test_patch_one_property(self, client, db_session):
        article = make_article(db_session, title="Old", price=1)

        response = client.put(
            BASE,
            params={"propChanged": "title"},
            json={"id": article.id, "title": "New", "price": 50},
        )

        assert response.status_code == 200
        assert response.json()["title"] == "New"
        assert response.json()["price"] == 1

    def test_patch_without_id(self, client):
        response = client.put(BASE, params={"propChanged": "title"}, json={"title": "New"})
        assert response.status_code == 400

    def test_delete(self, client, db_session):
        first = make_article(db_session)
        second = make_article(db_session)

        response = client.post(f"{BASE}/delete", json=[first.id, second.id])

        assert response.status_code == 200
        assert response.json() == {"deleted": 2}

    def test_delete_unknown_id(self, client):
        response = client.post(f"{BASE}/delete", json=[12345])
        assert response.status_code == 404


class TestCsvEndpoints:
    def test_export_downloads_csv(self, client, db_session):
        make_article(db_session, slug="one", title="One", published=True)
        make_article(db_session, slug="two", title="Two")

        response = client.post(f"{BASE}/export", json={}, headers={"Accept-Language": "es"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="article.csv"' in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][:2] == ["Slug", "Título"]
        assert [row[0] for row in rows[1:]] == ["one", "two"]

    def test_export_with_filter(self, client, db_session):
        make_article(db_session, slug="one", title="One", status="DRAFT")
        make_article(db_session, slug="two", title="Two", status="PUBLISHED")

        response = client.post(
            f"{BASE}/export",
            json={"filterModel": {"status": {"filterType": "set", "values": ["PUBLISHED"]}}},
        )

        rows = list(csv.reader(io.StringIO(response.text)))
        assert [row[0] for row in rows[1:]] == ["two"]

    def test_import_upload(self, client, db_session):
        content = "Slug,Title,Price\nnew-one,Imported,3\n,Broken,abc\n".encode("utf-8-sig")

        response = client.post(
            f"{BASE}/import",
            files={"file": ("articles.csv", content, "text/csv")},
        )

        assert response.status_code == 200
        log = response.json()
        assert log["totalRowCount"] == 2
        assert log["successRowCount"] == 1
        assert log["errorRowCount"] == 1
        assert log["errors"][0]["row"] == 3
        imported = db_session.scalars(select(Article).where(Article.slug == "new-one")).one()
        assert imported.title == "Imported"

    def test_import_without_header(self, client):
        response = client.post(
            f"{BASE}/import",
            files={"file": ("empty.csv", b"", "text/csv")},
        )
        assert response.status_code == 400


class TestAccessHook:
    """The router asks the hook for one dependency per permission."""

    @pytest.fixture
    def guarded_client(self, db_session):
        asked = []

        def access_dependency(permission: AccessPermission):
            asked.append(permission)

            def check():
                if permission == AccessPermission.DELETE:
                    raise HTTPException(status_code=403, detail="Not allowed")

            return check

        router = build_crud_router(
            get_article_service,
            GenericTransformer(Article, ArticleDto),
            prefix="/articles",
            access_dependency=access_dependency,
        )
        app = create_app([router], with_lifespan=False)
        app.dependency_overrides[get_db] = lambda: db_session

        with TestClient(app) as test_client:
            yield test_client, asked

    def test_permissions_are_requested(self, guarded_client):
        _, asked = guarded_client
        assert set(asked) == set(AccessPermission)

    def test_denied_permission(self, guarded_client):
        test_client, _ = guarded_client
        response = test_client.post(f"{BASE}/delete", json=[1])
        assert response.status_code == 403

    def test_allowed_permission(self, guarded_client):
        test_client, _ = guarded_client
        response = test_client.post(f"{BASE}/search", json={"page": 0, "size": 5})
        assert response.status_code == 200
