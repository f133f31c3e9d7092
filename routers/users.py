import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from database import get_db, transaction
from models.students import Role, User
from routers.auth import create_role_record, require_roles, user_view
from services import notifications
from services.errors import ValidationError
from services.identity import find_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["Users"])
admin_only = require_roles(Role.ADMIN)

# --- SCHEMAS ---
class ApproveSchema(BaseModel):
    is_approved: bool = True

class RoleSchema(BaseModel):
    role: str


@router.get("")
def list_users(
    role: Optional[str] = None,
    approved: Optional[bool] = None,
    db: Session = Depends(get_db),
    _: User = Depends(admin_only),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role.upper())
    if approved is not None:
        query = query.filter(User.is_approved == approved)
    return [user_view(u) for u in query.order_by(User.created_at.desc()).all()]


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    return user_view(find_user(db, user_id))


# 1. APPROVE / DISAPPROVE
@router.patch("/{user_id}/approve")
def approve_user(
    user_id: int,
    background_tasks: BackgroundTasks,
    payload: Optional[ApproveSchema] = None,
    db: Session = Depends(get_db),
    _: User = Depends(admin_only),
):
    approved = payload.is_approved if payload else True
    user = find_user(db, user_id)
    with transaction(db, "approve user"):
        user.is_approved = approved

    # fire and forget; a mail failure never fails the approval
    background_tasks.add_task(notifications.notify_approval, user.email, approved)
    logger.info("User %s %s", user_id, "approved" if approved else "disapproved")
    return {
        "message": f"User {'approved' if approved else 'disapproved'} successfully",
        "user": user_view(user),
    }


# 2. CHANGE ROLE (role + role record in one transaction)
@router.patch("/{user_id}/role")
def change_role(user_id: int, payload: RoleSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    try:
        role = Role(payload.role.upper())
    except ValueError:
        raise ValidationError("Invalid role. Must be ADMIN, FACULTY or STUDENT")

    user = find_user(db, user_id)
    if user.role == role.value:
        return {"message": "User already has this role", "user": user_view(user)}

    with transaction(db, "change role"):
        user.role = role.value
        create_role_record(db, user, role.value)

    logger.info("User %s is now %s", user_id, role.value)
    return {"message": "User role updated successfully", "user": user_view(user)}
