# src/classtrack/auth/deps.py
"""
Request identity.

Authentication happens upstream; the gateway forwards the caller's stable
user id and civil time zone as headers. This module only reads them.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from classtrack.core.config import settings
from classtrack.services.calendar_utils import resolve_zone, today_in_zone

log = logging.getLogger("classtrack.auth")

USER_HEADER = "X-User-Id"
TIMEZONE_HEADER = "X-User-Timezone"


@dataclass(frozen=True)
class CurrentUser:
    id: uuid.UUID
    timezone: str


def _dev_user(tz: Optional[str]) -> CurrentUser:
    return CurrentUser(id=uuid.UUID(settings.DEV_USER_ID), timezone=tz or settings.DEFAULT_TIMEZONE)


if settings.DISABLE_AUTH:
    log.warning("AUTH is DISABLED for this process; every request acts as %s", settings.DEV_USER_ID)


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_HEADER),
    x_user_timezone: Optional[str] = Header(default=None, alias=TIMEZONE_HEADER),
) -> Optional[CurrentUser]:
    tz = (x_user_timezone or "").strip() or settings.DEFAULT_TIMEZONE
    # raises ValidationError (422) for an unknown zone
    resolve_zone(tz)

    if settings.DISABLE_AUTH and not x_user_id:
        return _dev_user(tz)
    if not x_user_id:
        return None
    try:
        return CurrentUser(id=uuid.UUID(x_user_id.strip()), timezone=tz)
    except ValueError:
        log.info("rejecting malformed %s header", USER_HEADER)
        return None


async def require_user(user: Optional[CurrentUser] = Depends(get_current_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


async def get_reference_today(user: CurrentUser = Depends(require_user)) -> date:
    """The caller's civil "today"; override this dependency to pin the date."""
    return today_in_zone(user.timezone)
