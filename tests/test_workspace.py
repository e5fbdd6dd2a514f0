import pytest

from prolance.auth.models import UserRole
from prolance.messaging.models import Message
from prolance.notifications.models import Notification
from prolance.projects.models import Project


@pytest.fixture
def deal(client, market):
    deal = market.pending_contract()
    response = client.patch(f"/api/contracts/{deal.contract['id']}/status",
                            json={"status": "accepted"}, headers=deal.owner.headers)
    assert response.status_code == 200
    return deal


def set_phase(client, deal, phase, is_rollback=False):
    return client.put(f"/api/projects/{deal.project['id']}/work-status",
                      json={"work_status": phase, "is_rollback": is_rollback}, headers=deal.freelancer.headers)


def test_workspace_roles(client, market, deal):
    url = f"/api/projects/{deal.project['id']}/workspace"
    assert client.get(url, headers=deal.owner.headers).json()["user_role"] == "client"
    assert client.get(url, headers=deal.freelancer.headers).json()["user_role"] == "freelancer"
    outsider = market.user(UserRole.FREELANCER)
    assert client.get(url, headers=outsider.headers).status_code == 403


def test_phase_history_and_rollback(client, deal, db):
    for phase in ("designing", "development", "testing"):
        assert set_phase(client, deal, phase).status_code == 200

    response = set_phase(client, deal, "designing", is_rollback=True)
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Status rolled back successfully"
    assert data["work_status"] == "designing"
    assert [entry["phase"] for entry in data["phase_history"]] == ["designing"]

    contents = [m.content for m in db.query(Message).filter(Message.conversation_id == deal.conversation_id)]
    assert "Project Status Update: Now in Testing Phase" in contents
    assert "Status rolled back to: Design Phase" in contents


def test_only_assigned_freelancer_updates_work(client, market, deal):
    response = client.put(f"/api/projects/{deal.project['id']}/work-status",
                          json={"work_status": "testing"}, headers=deal.owner.headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Only the assigned freelancer can update work status"

    outsider = market.user(UserRole.FREELANCER)
    response = client.post(f"/api/projects/{deal.project['id']}/deliverables",
                           json={"title": "Nope"}, headers=outsider.headers)
    assert response.status_code == 403


def test_milestones(client, deal):
    base = f"/api/projects/{deal.project['id']}/milestones"
    response = client.post(base, json={"title": "Auth module"}, headers=deal.freelancer.headers)
    assert response.status_code == 201
    milestone = response.json()
    assert milestone["status"] == "pending"

    response = client.put(f"{base}/{milestone['id']}", json={"status": "completed"}, headers=deal.freelancer.headers)
    assert response.json()["completed_at"] is not None

    response = client.put(f"{base}/{milestone['id']}", json={"status": "in-progress"},
                          headers=deal.freelancer.headers)
    assert response.json()["completed_at"] is None

    response = client.put(f"{base}/999", json={"status": "completed"}, headers=deal.freelancer.headers)
    assert response.status_code == 404


def test_deliverables_and_notes(client, deal):
    base = f"/api/projects/{deal.project['id']}"
    response = client.post(f"{base}/deliverables", json={"title": "Draft", "file_url": "https://files/x.zip"},
                           headers=deal.freelancer.headers)
    deliverable = response.json()
    response = client.post(f"{base}/notes", json={"content": "Started on the API"}, headers=deal.freelancer.headers)
    assert response.status_code == 201

    workspace = client.get(f"{base}/workspace", headers=deal.owner.headers).json()
    assert [d["title"] for d in workspace["deliverables"]] == ["Draft"]
    assert [n["content"] for n in workspace["work_notes"]] == ["Started on the API"]

    response = client.delete(f"{base}/deliverables/{deliverable['id']}", headers=deal.freelancer.headers)
    assert response.status_code == 200
    assert client.get(f"{base}/workspace", headers=deal.owner.headers).json()["deliverables"] == []


@pytest.mark.parametrize("value,expected", [(150, 100), (-5, 0), (42, 42)])
def test_progress_is_clamped(client, deal, value, expected):
    response = client.put(f"/api/projects/{deal.project['id']}/progress",
                          json={"progress_percentage": value}, headers=deal.freelancer.headers)
    assert response.json()["progress_percentage"] == expected


def test_submit_requires_completed_status(client, deal):
    response = client.post(f"/api/projects/{deal.project['id']}/submit", headers=deal.freelancer.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Work status must be completed before submitting"


def test_submit_requires_deliverable(client, deal):
    set_phase(client, deal, "completed")
    response = client.post(f"/api/projects/{deal.project['id']}/submit", headers=deal.freelancer.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "At least one deliverable is required before submitting"


def test_submit_then_request_review(client, market, deal, db):
    project = market.finish_work(deal.freelancer, deal.project["id"])
    assert project["status"] == "completed"
    assert db.query(Notification).filter(
        Notification.user_id == deal.owner.id, Notification.type == "work_submitted"
    ).count() == 1

    response = client.post(f"/api/projects/{deal.project['id']}/request-review",
                           json={"comments": "Please fix the login page"}, headers=deal.owner.headers)
    assert response.status_code == 200
    assert response.json()["status"] == "in-progress"
    assert response.json()["work_status"] == "review"

    notification = db.query(Notification).filter(
        Notification.user_id == deal.freelancer.id, Notification.type == "review_requested"
    ).one()
    assert "Please fix the login page" in notification.message


def test_accept_requires_payment(client, market, deal):
    market.finish_work(deal.freelancer, deal.project["id"])
    response = client.post(f"/api/projects/{deal.project['id']}/accept", headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Payment must be completed before accepting the project"


def test_accept_with_escrow_payment(client, market, db):
    deal = market.pending_contract()
    market.fund_escrow(deal)
    market.finish_work(deal.freelancer, deal.project["id"])

    response = client.post(f"/api/projects/{deal.project['id']}/accept", headers=deal.freelancer.headers)
    assert response.status_code == 403

    response = client.post(f"/api/projects/{deal.project['id']}/accept", headers=deal.owner.headers)
    assert response.status_code == 200
    assert response.json()["status"] == "closed"
    assert db.get(Project, deal.project["id"]).status.value == "closed"
    assert db.query(Notification).filter(
        Notification.user_id == deal.freelancer.id, Notification.type == "project_accepted"
    ).count() == 1
