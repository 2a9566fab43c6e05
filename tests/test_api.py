"""
Tests for the audit HTTP API.
"""
import pytest
from fastapi.testclient import TestClient
from auditing.database import get_db
from auditing.main import app
from auditing.models.audit import Audit
from factories import ApiModel, make_audit


@pytest.fixture
def client(db_session):
    """Test client bound to the test database session."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Request-ID"]


class TestListAudits:

    def test_list_filters_by_subject(self, client, db_session, sample_article):
        make_audit(db_session, subject_id=sample_article.id, event="created")
        latest = make_audit(db_session, subject_id=sample_article.id, event="updated")
        make_audit(db_session, subject_id=999, event="created")

        response = client.get("/api/audits", params={"subject_id": str(sample_article.id)})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 2
        assert data[0]["id"] == latest.id

    def test_list_filters_by_event(self, client, db_session):
        make_audit(db_session, event="created")
        make_audit(db_session, event="updated")

        data = client.get("/api/audits", params={"event": "created"}).json()

        assert [audit["event"] for audit in data] == ["created"]


class TestAuditDetail:

    def test_detail_shows_modified_attributes(self, client, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            old_values={"title": "Draft title"},
            new_values={"title": "Final title"},
            context={"url": "console", "ip_address": "127.0.0.1", "tags": ["draft", "review"]},
        )

        response = client.get(f"/api/audits/{audit.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["modified"] == {"title": {"old": "Draft title", "new": "Final title"}}
        assert data["metadata"]["audit_event"] == "updated"
        assert data["metadata"]["audit_url"] == "console"
        assert data["tags"] == ["draft", "review"]

    def test_detail_not_found(self, client):
        assert client.get("/api/audits/12345").status_code == 404


class TestTransitionPreview:

    def test_preview_lists_pending_changes(self, client, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            old_values={"title": "Draft title"},
            new_values={"title": "Final title"},
        )

        response = client.post(f"/api/audits/{audit.id}/transition", params={"old": "true"})

        assert response.status_code == 200
        data = response.json()
        assert data["use_old_values"] is True
        assert data["pending"] == {"title": "Draft title"}

        # Preview never saves the subject
        db_session.refresh(sample_article)
        assert sample_article.title == "How To Audit Models"

    def test_incompatible_audit_is_refused(self, client, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            new_values={"subject": "Removed column"},
        )

        response = client.post(f"/api/audits/{audit.id}/transition")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["incompatibilities"] == ["subject"]
        assert detail["message"].startswith("Incompatibility between")

    def test_missing_subject(self, client, db_session):
        audit = make_audit(db_session, subject_id=999, new_values={"title": "Gone"})

        response = client.post(f"/api/audits/{audit.id}/transition")

        assert response.status_code == 404

    def test_unknown_subject_type(self, client, db_session):
        audit = make_audit(db_session, subject_type="shop.models.Order")

        response = client.post(f"/api/audits/{audit.id}/transition")

        assert response.status_code == 404
        assert db_session.query(Audit).count() == 1

    def test_string_key_subject_is_loaded_by_text(self, client, db_session):
        db_session.add(ApiModel(id="007", content="payload"))
        db_session.commit()
        audit = make_audit(
            db_session,
            subject_type="api_models",
            subject_id="007",
            new_values={"content": "earlier payload"},
        )

        response = client.post(f"/api/audits/{audit.id}/transition")

        assert response.status_code == 200
        assert response.json()["pending"] == {"content": "earlier payload"}
