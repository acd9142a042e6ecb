"""Login endpoint."""

import logging

from fastapi import APIRouter

from timesheet_engine.api.dependencies import AppSettings, DbSession
from timesheet_engine.api.schemas import ErrorResponse, LoginRequest, TokenResponse, UserResponse
from timesheet_engine.auth import authenticate, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}},
)
async def login(db: DbSession, settings: AppSettings, payload: LoginRequest) -> TokenResponse:
    """Exchange email and password for a bearer token."""
    user = await authenticate(db, payload.email, payload.password)
    logger.info("User %s signed in", user.id)
    return TokenResponse(
        access_token=create_access_token(user, settings),
        user=UserResponse.model_validate(user),
    )
