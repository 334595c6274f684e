from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rental_escrow.db.session import get_db
from rental_escrow.schemas.notification import NotificationOut
from rental_escrow.services import notifications

router = APIRouter(prefix="/notifications")

# Define a reusable type
db_dependency = Annotated[Session, Depends(get_db)]


@router.get("/{recipient}", response_model=list[NotificationOut])
def list_notifications(recipient: str, db: db_dependency, limit: int = Query(default=50, ge=1, le=200)):
    return notifications.list_notifications(db, recipient, limit=limit)
