"""User profile routes (``/users/me``)."""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.database import get_db
from workspace_manager.dependencies.activity import get_tracked_user
from workspace_manager.schemas.schemas import UserOut
from workspace_manager.schemas.schemas import UserUpdate

router = APIRouter(tags=["users"])


@router.get("/users/me", response_model=UserOut)
def read_current_user(current_user=Depends(get_tracked_user)):
    """Return the authenticated user's profile, including ``last_active``."""

    return current_user


@router.put("/users/me", response_model=UserOut)
def update_current_user(
    patch: UserUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    updated = crud.update_user(db, current_user.id, display_name=patch.display_name)

    if updated is None:
        # Should not happen if auth dependency returned a valid row.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return updated
