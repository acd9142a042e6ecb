"""HR user administration: accounts, managers, pay rates, and metrics."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from timesheet_engine.api.dependencies import DbSession, ReviewerActor
from timesheet_engine.api.schemas import (
    EarningsResponse,
    ErrorResponse,
    ManagerAssignment,
    PayCalculationResponse,
    PayRateCreate,
    PayRateResponse,
    UserCreate,
    UserMetricsResponse,
    UserResponse,
    UserUpdate,
)
from timesheet_engine.services.pay_service import PayService
from timesheet_engine.services.user_service import UserService

router = APIRouter(prefix="/hr/users", tags=["users"])

UserId = Annotated[UUID, Path(description="User ID")]


@router.get("", response_model=list[UserResponse], responses={400: {"model": ErrorResponse}})
async def list_users(
    db: DbSession,
    actor: ReviewerActor,
    role: Annotated[str | None, Query()] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[UserResponse]:
    users = await UserService(db).list_users(role=role, status=status_filter)
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_user(db: DbSession, actor: ReviewerActor, payload: UserCreate) -> UserResponse:
    user = await UserService(db).create_user(
        email=payload.email,
        name=payload.name,
        role=payload.role,
        password=payload.password,
        manager_id=payload.manager_id,
        pay_rate=payload.pay_rate,
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse, responses={404: {"model": ErrorResponse}})
async def get_user(db: DbSession, actor: ReviewerActor, user_id: UserId) -> UserResponse:
    return UserResponse.model_validate(await UserService(db).get_user(user_id))


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def update_user(
    db: DbSession,
    actor: ReviewerActor,
    user_id: UserId,
    payload: UserUpdate,
) -> UserResponse:
    """Partial update. `status` activates, deactivates, or suspends the account."""
    service = UserService(db)
    changes = payload.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)
    user = None
    if changes:
        user = await service.update_user(user_id, changes)
    if new_status is not None:
        user = await service.set_status(user_id, new_status)
    if user is None:
        user = await service.get_user(user_id)
    return UserResponse.model_validate(user)


@router.put(
    "/{user_id}/manager",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def assign_manager(
    db: DbSession,
    actor: ReviewerActor,
    user_id: UserId,
    payload: ManagerAssignment,
) -> UserResponse:
    user = await UserService(db).assign_manager(user_id, payload.manager_id)
    return UserResponse.model_validate(user)


@router.get(
    "/{user_id}/pay-rates",
    response_model=list[PayRateResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_pay_rates(db: DbSession, actor: ReviewerActor, user_id: UserId) -> list[PayRateResponse]:
    service = UserService(db)
    await service.get_user(user_id)
    return [PayRateResponse.model_validate(r) for r in await service.list_pay_rates(user_id)]


@router.post(
    "/{user_id}/pay-rates",
    response_model=PayRateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def add_pay_rate(
    db: DbSession,
    actor: ReviewerActor,
    user_id: UserId,
    payload: PayRateCreate,
) -> PayRateResponse:
    """Record an effective-dated pay rate."""
    row = await UserService(db).add_pay_rate(
        user_id, payload.pay_rate, payload.effective_date, payload.end_date
    )
    return PayRateResponse.model_validate(row)


@router.get(
    "/{user_id}/metrics",
    response_model=UserMetricsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def user_metrics(
    db: DbSession,
    actor: ReviewerActor,
    user_id: UserId,
    months: Annotated[int, Query(ge=1, le=120)] = 12,
) -> UserMetricsResponse:
    metrics = await UserService(db).user_metrics(user_id, months=months)
    return UserMetricsResponse.from_metrics(metrics)


@router.get(
    "/{user_id}/earnings",
    response_model=EarningsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def estimated_earnings(
    db: DbSession,
    actor: ReviewerActor,
    user_id: UserId,
    year: Annotated[int, Query(ge=1900, le=9999)],
) -> EarningsResponse:
    """Approved-hours earnings for a calendar year at historical rates."""
    calculation = await PayService(db).estimated_annual_earnings(user_id, year)
    return EarningsResponse(
        user_id=user_id,
        year=year,
        **PayCalculationResponse.from_calculation(calculation).model_dump(),
    )
