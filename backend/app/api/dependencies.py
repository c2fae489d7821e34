from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import get_db
from app.services import calendar_sync
from app.services.calendar_auth import TokenManager

DEFAULT_ACCOUNT_ID = "default"


def get_account_id(x_account_id: Optional[str] = Header(default=None)) -> str:
    """Account whose Google connection and events a request works on."""
    return (x_account_id or "").strip() or DEFAULT_ACCOUNT_ID


def get_user_id(user_id: Optional[str] = Header(default=None, alias="user-id")) -> Optional[str]:
    """Actor recorded as ``created_by``/``assigned_to``; set by the frontend."""
    return (user_id or "").strip() or None


def get_token_manager() -> TokenManager:
    return TokenManager()


def get_sync_engine(
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
    token_manager: TokenManager = Depends(get_token_manager),
) -> calendar_sync.SyncEngine:
    """Authenticated engine for the account; fails the request before any Google I/O."""
    return calendar_sync.connect(db, account_id, token_manager)


def auto_sync_enabled() -> bool:
    return settings.CALENDAR_AUTO_SYNC
