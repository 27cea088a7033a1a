"""Request dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from previz.controller import StoryboardController
from previz.core.settings import get_settings
from previz.core.user_context import UserContext
from previz.services import PrevizServices

limiter = Limiter(key_func=get_remote_address)


def render_rate_limit() -> str:
    return get_settings().render_rate_limit


def get_services(request: Request) -> PrevizServices:
    return request.app.state.services


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None)
) -> UserContext:
    """Identity is established upstream; requests carry the user id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return UserContext(user_id=x_user_id, email=x_user_email)


def get_controller(
    user: UserContext = Depends(get_current_user),
    services: PrevizServices = Depends(get_services)
) -> StoryboardController:
    return StoryboardController(user, services)
