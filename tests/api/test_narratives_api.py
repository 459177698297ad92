"""API tests for the narrative endpoints with a mocked service."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.endpoints.narratives import get_narrative_service
from app.core.exceptions import DatabaseError, NotFoundError, ValidationError
from app.main import app
from app.schemas.narratives import NarrativeSuggestion, NarrativeTemplateList, NarrativeTemplateResponse
from app.services.narratives import NarrativeService

BASE = "/api/v1/narratives"


@pytest.fixture
def mock_service():
    service = MagicMock(spec=NarrativeService)
    for name in (
        "create_template",
        "update_template",
        "deactivate_template",
        "get_template",
        "list_templates",
        "suggest",
        "apply",
        "auto_apply",
        "get_settings",
        "update_settings",
        "bulk_import",
    ):
        setattr(service, name, AsyncMock())
    app.dependency_overrides[get_narrative_service] = lambda: service
    return service


@pytest.fixture
def headers(tenant_id):
    return {"X-Tenant-Id": str(tenant_id), "X-User-Id": str(uuid.uuid4())}


@pytest.fixture
def settings_row(tenant_id):
    return SimpleNamespace(
        tenant_id=tenant_id,
        auto_apply_narratives=False,
        auto_apply_threshold=0.72,
        language="en-US",
        updated_at=datetime.now(timezone.utc),
    )


class TestStatelessEndpoints:
    def test_render(self, test_client):
        response = test_client.post(
            f"{BASE}/render",
            json={"body": "The {{location}} {{component}}", "variables": {"location": "north"}},
        )

        assert response.status_code == 200
        assert response.json()["data"]["rendered"] == "The north [unresolved]"

    def test_extract_variables(self, test_client):
        response = test_client.post(
            f"{BASE}/extract-variables",
            json={
                "title": "Damaged shingles",
                "summary": "Several wood shingles on the north roof are damaged",
                "structured_data": {"room": "Attic"},
            },
        )

        assert response.status_code == 200
        variables = response.json()["data"]["variables"]
        assert variables["location"] == "north"
        assert variables["roomName"] == "Attic"

    def test_extract_variables_requires_text(self, test_client):
        response = test_client.post(f"{BASE}/extract-variables", json={"title": "", "summary": "x"})
        assert response.status_code == 422


class TestTemplateEndpoints:
    def test_create(self, test_client, mock_service, headers, tenant_id, make_template):
        template = make_template()
        mock_service.create_template.return_value = template

        response = test_client.post(
            f"{BASE}/",
            json={"title": "Damaged shingles", "body": "The {{location}} roof", "category": "ROOFING"},
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] is True
        assert body["data"]["id"] == str(template.id)
        args, kwargs = mock_service.create_template.await_args
        assert args[0] == tenant_id
        assert str(kwargs["created_by"]) == headers["X-User-Id"]

    def test_create_rejects_unknown_category(self, test_client, mock_service, headers):
        response = test_client.post(
            f"{BASE}/", json={"title": "A", "body": "B", "category": "GARDEN"}, headers=headers
        )

        assert response.status_code == 422
        mock_service.create_template.assert_not_awaited()

    def test_tenant_header_is_required(self, test_client, mock_service):
        response = test_client.get(f"{BASE}/{uuid.uuid4()}")

        assert response.status_code == 422
        mock_service.get_template.assert_not_awaited()

    def test_get_not_found(self, test_client, mock_service, headers):
        template_id = uuid.uuid4()
        mock_service.get_template.side_effect = NotFoundError("Narrative template", template_id)

        response = test_client.get(f"{BASE}/{template_id}", headers=headers)

        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["title"] == "Narrative template Not Found"
        assert str(template_id) in detail["detail"]

    def test_list_passes_filters(self, test_client, mock_service, headers, make_template):
        mock_service.list_templates.return_value = NarrativeTemplateList(
            templates=[NarrativeTemplateResponse.model_validate(make_template())], total_count=1
        )

        response = test_client.get(
            f"{BASE}/",
            params={"category": "ROOFING", "tags": ["leak", "roof"], "limit": 10},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["total_count"] == 1
        filters = mock_service.list_templates.await_args.args[1]
        assert filters.category == "ROOFING"
        assert filters.tags == ["leak", "roof"]
        assert filters.limit == 10

    def test_list_limit_is_bounded(self, test_client, mock_service, headers):
        response = test_client.get(f"{BASE}/", params={"limit": 500}, headers=headers)
        assert response.status_code == 422

    def test_patch_null_title_is_rejected(self, test_client, headers, make_template):
        service = NarrativeService(MagicMock())
        service.template_repo = MagicMock()
        service.template_repo.get_for_tenant = AsyncMock(return_value=make_template())
        service.template_repo.apply_changes = AsyncMock()
        app.dependency_overrides[get_narrative_service] = lambda: service

        response = test_client.patch(f"{BASE}/{uuid.uuid4()}", json={"title": None}, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"]["errors"][0]["loc"] == ["title"]
        service.template_repo.apply_changes.assert_not_awaited()

    def test_deactivate(self, test_client, mock_service, headers, make_template):
        mock_service.deactivate_template.return_value = make_template(is_active=False)

        response = test_client.delete(f"{BASE}/{uuid.uuid4()}", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False


class TestFindingEndpoints:
    def test_suggest(self, test_client, mock_service, headers, tenant_id, make_template):
        finding_id = uuid.uuid4()
        mock_service.suggest.return_value = [
            NarrativeSuggestion(
                template=NarrativeTemplateResponse.model_validate(make_template()),
                score=0.34,
                variables={"location": "north"},
            )
        ]

        response = test_client.post(f"{BASE}/findings/{finding_id}/suggest", headers=headers)

        assert response.status_code == 200
        suggestions = response.json()["data"]["suggestions"]
        assert suggestions[0]["score"] == 0.34
        mock_service.suggest.assert_awaited_once_with(finding_id, tenant_id)

    def test_apply(self, test_client, mock_service, headers, make_finding):
        finding = make_finding(narrative_text="The wood shingles on the north roof show damaged.")
        mock_service.apply.return_value = finding
        narrative_id = uuid.uuid4()

        response = test_client.post(
            f"{BASE}/findings/{finding.id}/apply",
            json={"narrative_id": str(narrative_id), "mode": "auto", "confidence": 0.9},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["narrative_text"] == finding.narrative_text
        kwargs = mock_service.apply.await_args.kwargs
        assert kwargs["narrative_id"] == narrative_id
        assert kwargs["mode"].value == "auto"
        assert kwargs["confidence"] == 0.9

    def test_apply_missing_finding(self, test_client, mock_service, headers):
        finding_id = uuid.uuid4()
        mock_service.apply.side_effect = NotFoundError("Finding", finding_id)

        response = test_client.post(
            f"{BASE}/findings/{finding_id}/apply",
            json={"narrative_id": str(uuid.uuid4())},
            headers=headers,
        )

        assert response.status_code == 404

    def test_apply_database_failure_hides_cause(self, test_client, mock_service, headers):
        mock_service.apply.side_effect = DatabaseError(
            "apply failed: database error", original_error=SQLAlchemyError("password=secret")
        )

        response = test_client.post(
            f"{BASE}/findings/{uuid.uuid4()}/apply",
            json={"narrative_id": str(uuid.uuid4())},
            headers=headers,
        )

        assert response.status_code == 500
        assert "secret" not in response.text

    def test_auto_apply_nothing_applied(self, test_client, mock_service, headers):
        mock_service.auto_apply.return_value = None

        response = test_client.post(f"{BASE}/findings/{uuid.uuid4()}/auto-apply", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"applied": False}


class TestSettingsAndImport:
    def test_settings_route_is_not_shadowed(self, test_client, mock_service, headers, settings_row):
        mock_service.get_settings.return_value = settings_row

        response = test_client.get(f"{BASE}/settings", headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["auto_apply_narratives"] is False
        assert data["auto_apply_threshold"] == 0.72
        assert data["language"] == "en-US"
        mock_service.get_template.assert_not_awaited()

    def test_update_settings_validates_threshold(self, test_client, mock_service, headers):
        response = test_client.patch(f"{BASE}/settings", json={"auto_apply_threshold": 1.5}, headers=headers)

        assert response.status_code == 422
        mock_service.update_settings.assert_not_awaited()

    def test_bulk_import(self, test_client, mock_service, headers):
        mock_service.bulk_import.return_value = 2

        response = test_client.post(
            f"{BASE}/bulk-import",
            json={"templates": [{"title": "A", "body": "B", "category": "HVAC"}, {"title": "C", "body": "D", "category": "OTHER"}]},
            headers=headers,
        )

        assert response.status_code == 201
        assert response.json()["data"]["imported"] == 2

    def test_bulk_import_row_errors_are_400(self, test_client, mock_service, headers):
        mock_service.bulk_import.side_effect = ValidationError(
            "Invalid narrative definitions",
            errors=[{"loc": [1, "category"], "msg": "Input should be 'ROOFING'", "type": "enum"}],
        )

        response = test_client.post(
            f"{BASE}/bulk-import",
            json={"templates": [{"title": "A", "body": "B", "category": "SPACESHIP"}]},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["errors"][0]["loc"] == [1, "category"]
