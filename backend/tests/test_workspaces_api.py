"""Access rules on the workspace, project and task endpoints."""

import pytest


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


def test_create_workspace_defaults_owner_to_caller(client, owner_user, act_as):
    act_as(owner_user)

    response = client.post("/api/workspaces", json={"name": "Mine"})

    assert response.status_code == 201
    assert response.json()["owner_id"] == owner_user.id
    assert response.json()["status"] == "active"


def test_only_admin_creates_for_someone_else(client, owner_user, member_user, admin_user, act_as):
    act_as(member_user)
    denied = client.post("/api/workspaces", json={"name": "X", "owner_id": owner_user.id})
    assert denied.status_code == 403

    act_as(admin_user)
    allowed = client.post("/api/workspaces", json={"name": "X", "owner_id": owner_user.id})
    assert allowed.status_code == 201
    assert allowed.json()["owner_id"] == owner_user.id


def test_duplicate_workspace_id_rejected(client, owner_user, act_as, sample_workspace):
    act_as(owner_user)

    response = client.post("/api/workspaces", json={"id": sample_workspace.id, "name": "Again"})

    assert response.status_code == 422


def test_anyone_can_read_workspaces(client, outsider_user, act_as, sample_workspace):
    act_as(outsider_user)

    assert client.get(f"/api/workspaces/{sample_workspace.id}").status_code == 200
    assert [w["id"] for w in client.get("/api/workspaces").json()] == [sample_workspace.id]


@pytest.mark.parametrize("who,expected", [("owner", 200), ("member", 200), ("admin", 200), ("outsider", 403)])
def test_workspace_update_permissions(client, act_as, sample_workspace, who, expected, request):
    act_as(request.getfixturevalue(f"{who}_user"))

    response = client.put(f"/api/workspaces/{sample_workspace.id}", json={"description": "Edited"})

    assert response.status_code == expected
    if expected == 200:
        assert response.json()["description"] == "Edited"


@pytest.mark.parametrize("who,expected", [("member", 403), ("outsider", 403), ("owner", 204)])
def test_workspace_delete_permissions(client, act_as, sample_workspace, who, expected, request):
    act_as(request.getfixturevalue(f"{who}_user"))

    assert client.delete(f"/api/workspaces/{sample_workspace.id}").status_code == expected


def test_admin_can_delete_any_workspace(client, admin_user, act_as, sample_workspace):
    act_as(admin_user)

    assert client.delete(f"/api/workspaces/{sample_workspace.id}").status_code == 204
    assert client.get(f"/api/workspaces/{sample_workspace.id}").status_code == 404


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def test_member_creates_project(client, member_user, act_as, sample_workspace):
    act_as(member_user)

    response = client.post(
        "/api/projects",
        json={"name": "New", "workspace_id": sample_workspace.id, "tags": ["q3"]},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["created_by_id"] == member_user.id
    assert body["status"] == "planning"
    assert body["tags"] == ["q3"]


def test_outsider_cannot_create_project(client, outsider_user, act_as, sample_workspace):
    act_as(outsider_user)

    response = client.post("/api/projects", json={"name": "New", "workspace_id": sample_workspace.id})

    assert response.status_code == 403


def test_project_in_unknown_workspace(client, owner_user, act_as):
    act_as(owner_user)

    response = client.post("/api/projects", json={"name": "New", "workspace_id": "missing"})

    assert response.status_code == 404


def test_project_progress_is_bounded(client, owner_user, act_as, sample_workspace):
    act_as(owner_user)

    response = client.post(
        "/api/projects",
        json={"name": "New", "workspace_id": sample_workspace.id, "progress": 150},
    )

    assert response.status_code == 422


def test_project_visibility(client, owner_user, outsider_user, act_as, sample_project):
    act_as(outsider_user)
    assert client.get(f"/api/projects/{sample_project.id}").status_code == 403
    assert client.get("/api/projects").json() == []

    act_as(owner_user)
    listed = client.get("/api/projects", params={"workspace_id": sample_project.workspace_id}).json()
    assert [p["id"] for p in listed] == [sample_project.id]


def test_project_assignee_can_read(client, owner_user, outsider_user, act_as, sample_project):
    act_as(owner_user)
    client.put(
        f"/api/projects/{sample_project.id}",
        json={"assignees": [{"user_id": outsider_user.id, "role": "reviewer"}]},
    )

    act_as(outsider_user)
    assert client.get(f"/api/projects/{sample_project.id}").status_code == 200
    assert [p["id"] for p in client.get("/api/projects").json()] == [sample_project.id]
    # Reading does not grant write access.
    assert client.put(f"/api/projects/{sample_project.id}", json={"name": "Nope"}).status_code == 403


def test_admin_sees_all_projects(client, admin_user, act_as, sample_project):
    act_as(admin_user)

    assert [p["id"] for p in client.get("/api/projects").json()] == [sample_project.id]


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def test_member_creates_and_completes_task(client, member_user, act_as, sample_project):
    act_as(member_user)

    created = client.post(
        "/api/tasks",
        json={"title": "Write docs", "project_id": sample_project.id, "assignee_id": member_user.id},
    )
    assert created.status_code == 201
    task_id = created.json()["id"]
    assert created.json()["status"] == "to-do"

    updated = client.put(f"/api/tasks/{task_id}", json={"status": "completed"})
    assert updated.status_code == 200
    assert updated.json()["completed_date"] is not None


def test_task_self_parent_rejected(client, owner_user, act_as, sample_task):
    act_as(owner_user)

    response = client.put(f"/api/tasks/{sample_task.id}", json={"parent_id": sample_task.id})

    assert response.status_code == 422


def test_task_visibility(client, owner_user, outsider_user, act_as, sample_task):
    act_as(outsider_user)
    assert client.get(f"/api/tasks/{sample_task.id}").status_code == 403
    assert client.get("/api/tasks").json() == []
    assert client.delete(f"/api/tasks/{sample_task.id}").status_code == 403

    act_as(owner_user)
    client.put(f"/api/tasks/{sample_task.id}", json={"assignee_id": outsider_user.id})

    act_as(outsider_user)
    assert client.get(f"/api/tasks/{sample_task.id}").status_code == 200
    assert [t["id"] for t in client.get("/api/tasks", params={"assignee_id": outsider_user.id}).json()] == [
        sample_task.id
    ]


def test_list_tasks_by_project(client, owner_user, act_as, sample_task, sample_project):
    act_as(owner_user)

    listed = client.get("/api/tasks", params={"project_id": sample_project.id}).json()
    assert [t["id"] for t in listed] == [sample_task.id]
    assert client.get("/api/tasks", params={"project_id": "other"}).json() == []


def test_delete_task(client, member_user, act_as, sample_task):
    act_as(member_user)

    assert client.delete(f"/api/tasks/{sample_task.id}").status_code == 204
    assert client.get(f"/api/tasks/{sample_task.id}").status_code == 404
