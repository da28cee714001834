from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from invoicegen.core.deps import get_current_user
from invoicegen.db.session import get_db
from invoicegen.models.user import User
from invoicegen.schemas.user import UserSettings, UserSettingsUpdate
from invoicegen.services.users import update_user_settings

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/settings", response_model=UserSettings)
def get_settings(current_user: User = Depends(get_current_user)) -> UserSettings:
    return UserSettings.model_validate(current_user.settings or {})


@router.put("/settings", response_model=UserSettings)
def put_settings(
    payload: UserSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserSettings:
    # exclude_unset applies to the nested sender too, so only supplied fields merge.
    patch = payload.settings.model_dump(by_alias=True, exclude_unset=True)
    merged = update_user_settings(db, user=current_user, patch=patch)
    response = UserSettings.model_validate(merged)
    db.commit()
    return response
