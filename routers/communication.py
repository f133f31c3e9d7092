import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from database import get_db, transaction
from models.communication import Notice
from models.students import Role, User
from routers.auth import get_current_user, require_roles
from schemas.notices import NoticeCreateSchema, NoticeSchema, NoticeUpdateSchema
from services.errors import NotFound
from services.notices import notices_for, parse_target

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notices", tags=["Communication"])
staff = require_roles(Role.ADMIN, Role.FACULTY)


def _get_notice(db, notice_id):
    notice = db.query(Notice).filter(Notice.id == notice_id).first()
    if notice is None:
        raise NotFound("Notice not found")
    return notice


# --- 1. FEED FOR THE LOGGED-IN USER ---
@router.get("/feed", response_model=List[NoticeSchema])
def my_notices(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return notices_for(db, user)

# --- 2. ADMIN LIST ---
@router.get("", response_model=List[NoticeSchema])
def list_notices(db: Session = Depends(get_db), _: User = Depends(staff)):
    return db.query(Notice).order_by(Notice.publish_date.desc()).all()

@router.post("", response_model=NoticeSchema, status_code=201)
def create_notice(payload: NoticeCreateSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    data = payload.dict()
    data["target_type"] = parse_target(payload.target_type).value
    data["target_roles"] = [r.upper() for r in payload.target_roles]
    data["publish_date"] = payload.publish_date or datetime.utcnow()
    notice = Notice(**data, author_id=user.id)
    with transaction(db, "create notice"):
        db.add(notice)
    logger.info("Notice %r created by user %s", notice.title, user.id)
    return notice

@router.put("/{notice_id}", response_model=NoticeSchema)
def update_notice(notice_id: int, payload: NoticeUpdateSchema, db: Session = Depends(get_db), _: User = Depends(staff)):
    notice = _get_notice(db, notice_id)
    fields = payload.dict(exclude_unset=True)
    if "target_type" in fields:
        fields["target_type"] = parse_target(fields["target_type"]).value
    with transaction(db, "update notice"):
        for key, value in fields.items():
            setattr(notice, key, value)
    return notice

@router.delete("/{notice_id}")
def delete_notice(notice_id: int, db: Session = Depends(get_db), _: User = Depends(require_roles(Role.ADMIN))):
    notice = _get_notice(db, notice_id)
    with transaction(db, "delete notice"):
        db.delete(notice)
    return {"message": "Notice deleted"}
