from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.models.models import Project
from workspace_manager.models.models import Workspace
from workspace_manager.utils.time import utc_now_naive


def test_create_workspace_with_members(db_session: Session, owner_user, member_user):
    workspace = crud.create_workspace(
        db_session,
        name="Team",
        owner_id=owner_user.id,
        members=[{"user_id": member_user.id, "role": "admin"}],
        workspace_id="ws-1",
    )

    assert workspace.id == "ws-1"
    assert workspace.status == "active"
    assert [(m.user_id, m.role) for m in workspace.members] == [(member_user.id, "admin")]
    assert workspace.created_at == workspace.updated_at


def test_update_workspace_syncs_members(db_session: Session, sample_workspace: Workspace, owner_user, member_user):
    stamp = utc_now_naive() + timedelta(minutes=5)

    updated = crud.update_workspace(
        db_session,
        sample_workspace,
        {"name": "Renamed", "members": [{"user_id": owner_user.id, "role": "owner"}]},
        now=stamp,
    )

    assert updated.name == "Renamed"
    assert [m.user_id for m in updated.members] == [owner_user.id]
    assert updated.updated_at == stamp


def test_delete_workspace_cascades(db_session: Session, sample_workspace: Workspace, sample_task):
    crud.delete_workspace(db_session, sample_workspace)

    assert crud.get_workspace(db_session, sample_workspace.id) is None
    assert db_session.query(Project).count() == 0
    assert crud.get_task(db_session, sample_task.id) is None


def test_get_projects_filters_by_workspace(db_session: Session, sample_project: Project, owner_user):
    other = crud.create_workspace(db_session, name="Other", owner_id=owner_user.id)
    crud.create_project(db_session, name="Elsewhere", workspace_id=other.id, created_by_id=owner_user.id)

    projects = crud.get_projects(db_session, workspace_id=sample_project.workspace_id)

    assert [p.id for p in projects] == [sample_project.id]


def test_completed_date_tracks_status(db_session: Session, sample_task):
    assert sample_task.completed_date is None

    done = crud.update_task(db_session, sample_task, {"status": "completed"})
    assert done.completed_date is not None
    first_completed = done.completed_date

    again = crud.update_task(db_session, done, {"progress": 100})
    assert again.completed_date == first_completed

    reopened = crud.update_task(db_session, again, {"status": "in-progress"})
    assert reopened.completed_date is None


def test_task_cannot_be_its_own_parent(db_session: Session, sample_project, owner_user):
    with pytest.raises(ValueError):
        crud.create_task(
            db_session,
            title="Loop",
            project_id=sample_project.id,
            created_by_id=owner_user.id,
            task_id="t-loop",
            parent_id="t-loop",
        )


def test_task_cannot_depend_on_itself(db_session: Session, sample_task):
    with pytest.raises(ValueError):
        crud.update_task(db_session, sample_task, {"dependencies": [{"task_id": sample_task.id}]})


def test_comments_are_timestamped(db_session: Session, sample_task, owner_user):
    updated = crud.update_task(db_session, sample_task, {"comments": [{"user_id": owner_user.id, "content": "hi"}]})

    assert updated.comments[0]["content"] == "hi"
    assert updated.comments[0]["created_at"]


def test_session_completion_rounds_duration(db_session: Session, owner_user):
    started = utc_now_naive() - timedelta(minutes=90)
    work_session = crud.create_session(db_session, user_id=owner_user.id, now=started)

    completed = crud.update_session(
        db_session,
        work_session,
        {"status": "completed"},
        now=started + timedelta(minutes=44, seconds=40),
    )

    assert completed.completed_at == started + timedelta(minutes=44, seconds=40)
    assert completed.duration_minutes == 45
    assert completed.last_active == completed.completed_at


def test_get_active_session_prefers_most_recent(db_session: Session, owner_user):
    now = utc_now_naive()
    older = crud.create_session(db_session, user_id=owner_user.id, now=now - timedelta(hours=1))
    newer = crud.create_session(db_session, user_id=owner_user.id, now=now)
    crud.create_session(db_session, user_id=owner_user.id, status="paused", now=now + timedelta(minutes=1))

    assert crud.get_active_session(db_session, owner_user.id).id == newer.id
    assert older.id != newer.id


def test_sync_ledger_lookup_is_per_user(db_session: Session, owner_user, member_user):
    crud.record_sync_operation(
        db_session,
        user_id=owner_user.id,
        op_id="op-1",
        op_type="create",
        entity_type="task",
        entity_id="t1",
        payload={"title": "A"},
    )

    assert crud.get_sync_operation(db_session, owner_user.id, "op-1") is not None
    assert crud.get_sync_operation(db_session, member_user.id, "op-1") is None
