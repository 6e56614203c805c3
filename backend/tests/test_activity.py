"""Inactivity rule applied on every authenticated request."""

from datetime import timedelta

from prometheus_client import REGISTRY

from workspace_manager.services.activity import ActivityTracker
from workspace_manager.utils.time import utc_now_naive


def _counter(name):
    return REGISTRY.get_sample_value(name) or 0.0


def test_session_idle_past_timeout_is_paused(db_session, owner_user, make_work_session):
    work_session = make_work_session(owner_user, idle=timedelta(minutes=15, seconds=1))
    before = _counter("sessions_auto_paused_total")
    now = utc_now_naive()

    touched = ActivityTracker(timedelta(minutes=15)).track(db_session, owner_user, now=now)

    assert touched.id == work_session.id
    db_session.refresh(work_session)
    assert work_session.status == "paused"
    assert work_session.last_active == now
    assert _counter("sessions_auto_paused_total") == before + 1


def test_session_within_timeout_stays_active(db_session, owner_user, make_work_session):
    work_session = make_work_session(owner_user, idle=timedelta(minutes=14))
    now = utc_now_naive()

    ActivityTracker(timedelta(minutes=15)).track(db_session, owner_user, now=now)

    db_session.refresh(work_session)
    assert work_session.status == "active"
    assert work_session.last_active == now


def test_exactly_at_timeout_is_not_paused(db_session, owner_user, make_work_session):
    work_session = make_work_session(owner_user)
    now = work_session.last_active + timedelta(minutes=15)

    ActivityTracker(timedelta(minutes=15)).track(db_session, owner_user, now=now)

    db_session.refresh(work_session)
    assert work_session.status == "active"


def test_user_last_active_updated_without_session(db_session, owner_user):
    now = utc_now_naive()

    assert ActivityTracker().track(db_session, owner_user, now=now) is None

    db_session.refresh(owner_user)
    assert owner_user.last_active == now


def test_paused_sessions_are_left_alone(db_session, owner_user, make_work_session):
    paused = make_work_session(owner_user, idle=timedelta(hours=2), status="paused")
    stale_last_active = paused.last_active

    ActivityTracker().track(db_session, owner_user)

    db_session.refresh(paused)
    assert paused.status == "paused"
    assert paused.last_active == stale_last_active


def test_tracking_failure_does_not_raise(db_session, owner_user, monkeypatch):
    from workspace_manager.crud import crud

    def broken(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(crud, "get_active_session", broken)
    before = _counter("activity_tracking_errors_total")

    assert ActivityTracker().track(db_session, owner_user) is None
    assert _counter("activity_tracking_errors_total") == before + 1


def test_request_pauses_stale_session(client, db_session, owner_user, act_as, make_work_session):
    act_as(owner_user)
    work_session = make_work_session(owner_user, idle=timedelta(minutes=20))

    response = client.get("/api/users/me")

    assert response.status_code == 200
    db_session.refresh(work_session)
    assert work_session.status == "paused"


def test_request_keeps_recent_session_active(client, db_session, owner_user, act_as, make_work_session):
    act_as(owner_user)
    work_session = make_work_session(owner_user, idle=timedelta(minutes=1))
    previous = work_session.last_active

    client.get("/api/workspaces")

    db_session.refresh(work_session)
    assert work_session.status == "active"
    assert work_session.last_active > previous
