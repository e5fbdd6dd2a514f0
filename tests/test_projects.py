from prolance.auth.models import UserRole
from prolance.projects.models import Project


def test_create_project(market):
    owner = market.user(UserRole.CLIENT)
    project = market.create_project(owner)
    assert project["status"] == "open"
    assert project["work_status"] == "planning"
    assert project["client_id"] == owner.id
    assert project["budget"] == {"min": 1000, "max": 5000, "type": "fixed"}


def test_freelancer_cannot_create_project(client, market):
    freelancer = market.user(UserRole.FREELANCER)
    response = client.post("/api/projects", json={
        "title": "Logo", "description": "A logo", "category": "Graphics & Design",
        "budget": {"min": 10, "max": 20}, "duration": "1 week",
    }, headers=freelancer.headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Only clients can create projects"


def test_create_project_missing_fields(client, market):
    owner = market.user(UserRole.CLIENT)
    response = client.post("/api/projects", json={"title": "No budget"}, headers=owner.headers)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_budget_range_validated(client, market):
    owner = market.user(UserRole.BOTH)
    response = client.post("/api/projects", json={
        "title": "Backwards", "description": "Max below min", "category": "Other",
        "budget": {"min": 500, "max": 100}, "duration": "1 week",
    }, headers=owner.headers)
    assert response.status_code == 400


def test_listing_filters_are_conjunctive(client, market):
    owner = market.user(UserRole.CLIENT)
    market.create_project(owner, title="React dashboard", budget={"min": 1000, "max": 4000},
                          skills_required=["React", "TypeScript"])
    market.create_project(owner, title="Django shop", budget={"min": 3000, "max": 9000},
                          skills_required=["Python", "Django"])
    market.create_project(owner, title="Brand book", category="Graphics & Design",
                          budget={"min": 200, "max": 800}, skills_required=["Illustrator"], tags=["branding"])

    def titles(**params):
        response = client.get("/api/projects", params=params)
        assert response.status_code == 200
        return {p["title"] for p in response.json()["projects"]}

    assert titles() == {"React dashboard", "Django shop", "Brand book"}
    assert titles(category="Programming & Tech") == {"React dashboard", "Django shop"}
    assert titles(minBudget=1000) == {"React dashboard", "Django shop"}
    assert titles(maxBudget=4000) == {"React dashboard", "Brand book"}
    assert titles(minBudget=1000, maxBudget=4000) == {"React dashboard"}
    assert titles(skills="Django,Illustrator") == {"Django shop", "Brand book"}
    assert titles(skills="React", maxBudget=800) == set()
    assert titles(search="BRANDING") == {"Brand book"}
    assert titles(search="shop") == {"Django shop"}


def test_listing_is_paginated_newest_first(client, market):
    owner = market.user(UserRole.CLIENT)
    for i in range(3):
        market.create_project(owner, title=f"Project {i}")
    response = client.get("/api/projects", params={"limit": 2, "page": 1})
    data = response.json()
    assert [p["title"] for p in data["projects"]] == ["Project 2", "Project 1"]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}


def test_private_projects_are_not_listed(client, market):
    owner = market.user(UserRole.CLIENT)
    market.create_project(owner, title="Secret", visibility="private")
    assert client.get("/api/projects").json()["projects"] == []


def test_view_count(client, market, db):
    owner = market.user(UserRole.CLIENT)
    viewer = market.user(UserRole.FREELANCER)
    project = market.create_project(owner)
    url = f"/api/projects/{project['id']}"

    client.get(url)
    client.get(url)
    client.get(url, headers=viewer.headers)
    response = client.get(url, headers=viewer.headers)
    assert response.json()["view_count"] == 3
    assert db.get(Project, project["id"]).viewed_by == [viewer.id]


def test_update_project_owner_only(client, market):
    owner = market.user(UserRole.CLIENT)
    other = market.user(UserRole.CLIENT)
    project = market.create_project(owner)

    response = client.put(f"/api/projects/{project['id']}", json={"title": "Hijacked"}, headers=other.headers)
    assert response.status_code == 403

    response = client.put(f"/api/projects/{project['id']}",
                          json={"title": "Renamed", "client_id": other.id, "proposal_count": 99},
                          headers=owner.headers)
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed"
    assert data["client_id"] == owner.id
    assert data["proposal_count"] == 0


def test_my_projects_counts_pending_applications(client, market):
    owner = market.user(UserRole.CLIENT)
    freelancer = market.user(UserRole.FREELANCER)
    project = market.create_project(owner)
    market.apply(freelancer, project["id"])

    response = client.get("/api/projects/my-projects", params={"role": "client"}, headers=owner.headers)
    assert response.status_code == 200
    [mine] = response.json()
    assert mine["pending_application_count"] == 1
    assert mine["proposal_count"] == 1


def test_delete_project(client, market, db):
    owner = market.user(UserRole.CLIENT)
    freelancer = market.user(UserRole.FREELANCER)
    project = market.create_project(owner)
    application = market.apply(freelancer, project["id"])
    market.accept_application(owner, application["id"])

    response = client.delete(f"/api/projects/{project['id']}", headers=owner.headers)
    assert response.status_code == 200
    assert client.get(f"/api/projects/{project['id']}").status_code == 404
