"""Seed the database with sample users, a workspace, a project and tasks.

Usage:
    python -m workspace_manager.seed

Optional arguments:
    --force    Seed even when the sample admin already exists
"""

import argparse
import sys
from datetime import timedelta

from workspace_manager.crud import crud
from workspace_manager.database import db_session
from workspace_manager.database import initialize_database
from workspace_manager.utils.time import utc_now_naive

ADMIN_EMAIL = "admin@example.com"
USER_EMAIL = "user@example.com"


def seed(force: bool = False) -> bool:
    """Create the sample data set; returns *False* when it already exists."""

    print("🌱 Seeding database...")
    initialize_database()

    with db_session() as db:
        if crud.get_user_by_email(db, ADMIN_EMAIL) is not None and not force:
            print(f"  ⚠️  {ADMIN_EMAIL} already exists, nothing to do (use --force to seed anyway)")
            return False

        now = utc_now_naive()
        day = timedelta(days=1)

        admin = crud.get_user_by_email(db, ADMIN_EMAIL) or crud.create_user(
            db, email=ADMIN_EMAIL, provider="seed", role="ADMIN", display_name="Admin User"
        )
        print(f"👤 Admin user: {admin.email} (ID: {admin.id})")

        user = crud.get_user_by_email(db, USER_EMAIL) or crud.create_user(
            db, email=USER_EMAIL, provider="seed", role="USER", display_name="Regular User"
        )
        print(f"👤 Regular user: {user.email} (ID: {user.id})")

        workspace = crud.create_workspace(
            db,
            name="Sample Workspace",
            description="This is a sample workspace for demonstration purposes.",
            owner_id=admin.id,
            members=[
                {"user_id": admin.id, "role": "owner"},
                {"user_id": user.id, "role": "member"},
            ],
            status="active",
        )
        print(f"  ✨ Workspace: {workspace.name} (ID: {workspace.id})")

        project = crud.create_project(
            db,
            name="Sample Project",
            workspace_id=workspace.id,
            created_by_id=admin.id,
            assignees=[
                {"user_id": admin.id, "role": "lead"},
                {"user_id": user.id, "role": "contributor"},
            ],
            description="This is a sample project for demonstration purposes.",
            status="in-progress",
            priority="medium",
            start_date=now,
            due_date=now + 30 * day,
            tags=["sample", "demo"],
            progress=25,
        )
        print(f"  ✨ Project: {project.name} (ID: {project.id})")

        research = crud.create_task(
            db,
            title="Task 1: Research",
            project_id=project.id,
            created_by_id=admin.id,
            description="Research and gather requirements for the project.",
            status="completed",
            priority="high",
            assignee_id=admin.id,
            estimated_hours=8,
            actual_hours=10,
            start_date=now - 7 * day,
            due_date=now - 3 * day,
            tags=["research"],
            progress=100,
        )
        design = crud.create_task(
            db,
            title="Task 2: Design",
            project_id=project.id,
            created_by_id=admin.id,
            description="Create wireframes and design concepts.",
            status="in-progress",
            priority="medium",
            assignee_id=user.id,
            estimated_hours=16,
            actual_hours=8,
            start_date=now - 2 * day,
            due_date=now + 3 * day,
            tags=["design"],
            progress=50,
            dependencies=[{"task_id": research.id, "type": "finish-to-start"}],
        )
        development = crud.create_task(
            db,
            title="Task 3: Development",
            project_id=project.id,
            created_by_id=admin.id,
            description="Implement the core features based on the design.",
            status="to-do",
            priority="medium",
            assignee_id=admin.id,
            estimated_hours=40,
            due_date=now + 14 * day,
            tags=["development"],
            progress=0,
            dependencies=[{"task_id": design.id, "type": "finish-to-start"}],
        )
        for task in (research, design, development):
            print(f"  ✨ Task: {task.title} (ID: {task.id})")

        work_session = crud.create_session(
            db,
            user_id=user.id,
            workspace_id=workspace.id,
            project_id=project.id,
            task_id=design.id,
            notes="Working on wireframes for the dashboard screen.",
            context={
                "currentScreen": "design",
                "activeTool": "wireframe",
                "savedState": {
                    "currentFile": "dashboard.sketch",
                    "progress": 65,
                    "pendingItems": ["navigation", "user profile"],
                    "completedItems": ["login screen", "home screen"],
                },
            },
        )
        work_session.started_at = now - timedelta(hours=2)
        db.commit()
        print(f"  ✨ Session: {work_session.id}")

        print("✅ Seed completed successfully!")
        return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the workspace manager database with sample data")
    parser.add_argument("--force", action="store_true", help="Seed even when sample data already exists")
    args = parser.parse_args(argv)

    try:
        seed(force=args.force)
    except Exception as exc:
        print(f"❌ Error seeding database: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
