"""
Caller identity.

Session verification happens upstream (identity gateway); it forwards the
verified user id in ``X-User-Id``. We only load the matching user row.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = db.query(User).filter(User.id == int(x_user_id), User.is_active.is_(True)).first()
    if not user:
        logger.warning(f"⚠️ Authenticated user id {x_user_id} has no active account")
        raise HTTPException(status_code=401, detail="User not found")

    return user
