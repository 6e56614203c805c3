from workspace_manager import seed as seed_module
from workspace_manager.crud import crud
from workspace_manager.models.models import Project
from workspace_manager.models.models import Task
from workspace_manager.models.models import Workspace


def test_seed_creates_sample_data(db_session):
    assert seed_module.seed() is True

    db_session.expire_all()
    admin = crud.get_user_by_email(db_session, seed_module.ADMIN_EMAIL)
    assert admin.role == "ADMIN"
    assert db_session.query(Workspace).count() == 1
    assert db_session.query(Project).count() == 1

    tasks = {t.title: t for t in db_session.query(Task).all()}
    assert len(tasks) == 3
    assert tasks["Task 1: Research"].completed_date is not None
    assert tasks["Task 3: Development"].dependencies == [
        {"task_id": tasks["Task 2: Design"].id, "type": "finish-to-start"}
    ]

    user = crud.get_user_by_email(db_session, seed_module.USER_EMAIL)
    (work_session,) = crud.get_sessions(db_session, user_id=user.id)
    assert work_session.context["savedState"]["currentFile"] == "dashboard.sketch"


def test_seed_is_idempotent(db_session, capsys):
    seed_module.seed()

    assert seed_module.seed() is False
    assert db_session.query(Workspace).count() == 1
    assert "already exists" in capsys.readouterr().out


def test_main_reports_success(db_session):
    assert seed_module.main([]) == 0
    assert seed_module.main(["--force"]) == 0
    assert db_session.query(Workspace).count() == 2
