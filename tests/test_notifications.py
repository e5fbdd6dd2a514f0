from prolance.auth.models import UserRole


def test_application_notifies_client(client, market):
    owner = market.user(UserRole.CLIENT)
    freelancer = market.user(UserRole.FREELANCER, name="Nina Freelancer")
    project = market.create_project(owner, title="Landing page")
    application = market.apply(freelancer, project["id"])

    response = client.get("/api/notifications", headers=owner.headers)
    data = response.json()
    assert data["total"] == 1
    assert data["unread_count"] == 1
    [notification] = data["notifications"]
    assert notification["type"] == "new_application"
    assert notification["message"] == 'Nina Freelancer applied to "Landing page"'
    assert notification["project_id"] == project["id"]
    assert notification["data"] == {"application_id": application["id"]}


def test_decision_notifies_freelancer(client, market):
    owner = market.user(UserRole.CLIENT)
    accepted = market.user(UserRole.FREELANCER)
    rejected = market.user(UserRole.FREELANCER)
    project = market.create_project(owner)
    first = market.apply(accepted, project["id"])
    second = market.apply(rejected, project["id"])

    result = market.accept_application(owner, first["id"])
    client.patch(f"/api/applications/{second['id']}/status", json={"status": "rejected"}, headers=owner.headers)

    [notification] = client.get("/api/notifications", headers=accepted.headers).json()["notifications"]
    assert notification["type"] == "application_accepted"
    assert notification["data"]["conversation_id"] == result["conversation_id"]

    [notification] = client.get("/api/notifications", headers=rejected.headers).json()["notifications"]
    assert notification["type"] == "application_rejected"


def test_read_and_delete(client, market):
    owner = market.user(UserRole.CLIENT)
    project = market.create_project(owner)
    for _ in range(3):
        market.apply(market.user(UserRole.FREELANCER), project["id"])

    notifications = client.get("/api/notifications", headers=owner.headers).json()["notifications"]
    first_id = notifications[0]["id"]

    response = client.patch(f"/api/notifications/{first_id}/read", headers=owner.headers)
    assert response.json()["is_read"] is True
    assert client.get("/api/notifications/unread-count", headers=owner.headers).json() == {"unread_count": 2}

    unread = client.get("/api/notifications", params={"unread_only": True}, headers=owner.headers).json()
    assert len(unread["notifications"]) == 2

    response = client.patch("/api/notifications/read-all", headers=owner.headers)
    assert response.json()["updated"] == 2
    assert client.get("/api/notifications/unread-count", headers=owner.headers).json() == {"unread_count": 0}

    assert client.delete(f"/api/notifications/{first_id}", headers=owner.headers).status_code == 200
    assert client.get("/api/notifications", headers=owner.headers).json()["total"] == 2


def test_cannot_touch_other_users_notifications(client, market):
    owner = market.user(UserRole.CLIENT)
    freelancer = market.user(UserRole.FREELANCER)
    project = market.create_project(owner)
    market.apply(freelancer, project["id"])
    notification_id = client.get("/api/notifications", headers=owner.headers).json()["notifications"][0]["id"]

    assert client.patch(f"/api/notifications/{notification_id}/read", headers=freelancer.headers).status_code == 404
    assert client.delete(f"/api/notifications/{notification_id}", headers=freelancer.headers).status_code == 404


def test_notifications_require_auth(client):
    response = client.get("/api/notifications")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Authentication required"}
