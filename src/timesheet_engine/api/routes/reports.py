"""Report generation and saved custom reports."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status
from fastapi.responses import JSONResponse

from timesheet_engine.api.dependencies import AppMailer, DbSession, ReviewerActor
from timesheet_engine.api.schemas import (
    CustomReportCreate,
    CustomReportResponse,
    ErrorResponse,
    ReportEmailResponse,
    ReportExecuteRequest,
    ReportRequest,
)
from timesheet_engine.services.custom_report_service import CustomReportService
from timesheet_engine.services.export import CONTENT_TYPES, email_report, render, report_filename
from timesheet_engine.services.report_service import (
    OutputFormat,
    Report,
    ReportConfig,
    ReportService,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


def _file_response(report: Report, output_format: OutputFormat) -> Response:
    filename = report_filename(report, output_format)
    return Response(
        content=render(report, output_format),
        media_type=CONTENT_TYPES[output_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/reports",
    responses={
        200: {"content": {"text/csv": {}, "application/pdf": {}}},
        207: {"model": ReportEmailResponse},
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
    },
)
async def generate_report(
    db: DbSession,
    actor: ReviewerActor,
    mailer: AppMailer,
    payload: ReportRequest,
) -> Response:
    """Build an ad-hoc report and return it, or email it when `email_to` is set."""
    if payload.columns:
        config = ReportConfig(
            report_type=payload.report_type,
            columns=tuple(payload.columns),
            filters=ReportConfig.default(payload.report_type).filters,
        )
    else:
        config = ReportConfig.default(payload.report_type)

    report = await ReportService(db).build(config, payload.to_parameters())
    logger.info(
        "Report %s built by %s with %d rows",
        config.report_type.value,
        actor.id,
        report.record_count,
    )

    if payload.email_to and mailer.enabled:
        try:
            filename = await email_report(mailer, payload.email_to, report, payload.format)
        except Exception:
            logger.exception("Failed to email report to %s", payload.email_to)
            return JSONResponse(
                status_code=status.HTTP_207_MULTI_STATUS,
                content=ReportEmailResponse(
                    message="Report generated but failed to send email",
                    record_count=report.record_count,
                ).model_dump(),
            )
        return JSONResponse(
            content=ReportEmailResponse(
                message="Report generated and emailed successfully",
                record_count=report.record_count,
                filename=filename,
            ).model_dump()
        )
    if payload.email_to:
        logger.warning("Email delivery requested but SMTP is not configured")

    return _file_response(report, payload.format)


# ============================================================================
# Custom reports
# ============================================================================


@router.get("/custom-reports", response_model=list[CustomReportResponse])
async def list_custom_reports(db: DbSession, actor: ReviewerActor) -> list[CustomReportResponse]:
    reports = await CustomReportService(db).list_active()
    return [CustomReportResponse.model_validate(r) for r in reports]


@router.post(
    "/custom-reports",
    response_model=CustomReportResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_custom_report(
    db: DbSession,
    actor: ReviewerActor,
    payload: CustomReportCreate,
) -> CustomReportResponse:
    report = await CustomReportService(db).create(
        actor, payload.name, payload.config, payload.description
    )
    return CustomReportResponse.model_validate(report)


@router.get(
    "/custom-reports/{report_id}",
    response_model=CustomReportResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_custom_report(
    db: DbSession,
    actor: ReviewerActor,
    report_id: Annotated[UUID, Path()],
) -> CustomReportResponse:
    report = await CustomReportService(db).get(report_id)
    return CustomReportResponse.model_validate(report)


@router.put(
    "/custom-reports/{report_id}",
    response_model=CustomReportResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_custom_report(
    db: DbSession,
    actor: ReviewerActor,
    report_id: Annotated[UUID, Path()],
    payload: CustomReportCreate,
) -> CustomReportResponse:
    report = await CustomReportService(db).update(
        report_id, payload.name, payload.config, payload.description
    )
    return CustomReportResponse.model_validate(report)


@router.delete(
    "/custom-reports/{report_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_custom_report(
    db: DbSession,
    actor: ReviewerActor,
    report_id: Annotated[UUID, Path()],
) -> Response:
    """Deactivate a saved report."""
    await CustomReportService(db).delete(report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/custom-reports/{report_id}/execute",
    responses={
        200: {"content": {"text/csv": {}, "application/pdf": {}}},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def execute_custom_report(
    db: DbSession,
    actor: ReviewerActor,
    report_id: Annotated[UUID, Path()],
    payload: ReportExecuteRequest,
) -> Response:
    """Run a saved report with runtime parameters."""
    report = await CustomReportService(db).execute(report_id, payload.parameters.to_parameters())
    return _file_response(report, payload.format)
