"""Saved report definitions."""

from __future__ import annotations

import logging
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.errors import NotActionableError, ValidationError
from timesheet_engine.models import CustomReport
from timesheet_engine.services.permissions import Actor
from timesheet_engine.services.report_service import (
    Report,
    ReportConfig,
    ReportParameters,
    ReportService,
)

logger = logging.getLogger(__name__)


class CustomReportService:
    """CRUD for saved reports. Deletion is soft: the row is deactivated."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _clean_name(name: str | None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name and config are required")
        return name

    async def list_active(self) -> list[CustomReport]:
        result = await self.session.execute(
            select(CustomReport)
            .where(CustomReport.is_active.is_(True))
            .order_by(CustomReport.created_at.desc(), CustomReport.name)
        )
        return list(result.scalars().all())

    async def get(self, report_id: UUID) -> CustomReport:
        report = await self.session.scalar(
            select(CustomReport).where(
                CustomReport.id == report_id,
                CustomReport.is_active.is_(True),
            )
        )
        if report is None:
            raise NotActionableError("Custom report not found")
        return report

    async def create(
        self,
        actor: Actor,
        name: str,
        config: Mapping[str, Any],
        description: str = "",
    ) -> CustomReport:
        report_config = ReportConfig.from_dict(config)
        report = CustomReport(
            name=self._clean_name(name),
            description=description or "",
            config=report_config.to_dict(),
            created_by=actor.id,
            is_active=True,
        )
        self.session.add(report)
        await self.session.commit()
        await self.session.refresh(report)
        logger.info("Custom report %s created by %s", report.id, actor.id)
        return report

    async def update(
        self,
        report_id: UUID,
        name: str,
        config: Mapping[str, Any],
        description: str = "",
    ) -> CustomReport:
        report = await self.get(report_id)
        report.name = self._clean_name(name)
        report.description = description or ""
        report.config = ReportConfig.from_dict(config).to_dict()
        await self.session.commit()
        await self.session.refresh(report)
        return report

    async def delete(self, report_id: UUID) -> None:
        report = await self.get(report_id)
        report.is_active = False
        await self.session.commit()
        logger.info("Custom report %s deactivated", report_id)

    async def execute(
        self,
        report_id: UUID,
        parameters: ReportParameters | None = None,
    ) -> Report:
        """Build the saved report with runtime parameters."""
        saved = await self.get(report_id)
        config = ReportConfig.from_dict(saved.config)
        return await ReportService(self.session).build(config, parameters, title=saved.name)
