"""Service layer for browsing API audit records."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.audit_log import ApiAuditLog
from schemas.audit_log import AuditLogStats


@dataclass
class AuditLogFilters:
    """Filters for the audit log view. All are optional and combined with AND."""

    user_id: UUID | None = None
    user_email: str | None = None
    user_role: str | None = None
    endpoint_type: str | None = None
    action: str | None = None
    method: str | None = None
    status_code: int | None = None
    error_type: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column: ColumnElement, value: str) -> ColumnElement[bool]:
    return column.ilike(f"%{_escape_like(value)}%", escape="\\")


def _search_condition(search: str) -> ColumnElement[bool]:
    """
    Free-text search.

    - a UUID matches the user id exactly
    - a number matches the status code exactly
    - text containing "@" matches the user email
    - anything else matches the path or the action
    """
    term = search.strip()
    try:
        return ApiAuditLog.user_id == UUID(term)
    except ValueError:
        pass
    if term.isdigit():
        return ApiAuditLog.status_code == int(term)
    if "@" in term:
        return _contains(ApiAuditLog.user_email, term)
    return or_(_contains(ApiAuditLog.path, term), _contains(ApiAuditLog.action, term))


def build_conditions(filters: AuditLogFilters) -> list[ColumnElement[bool]]:
    """Translate filters to WHERE conditions."""
    conditions: list[ColumnElement[bool]] = []
    if filters.user_id is not None:
        conditions.append(ApiAuditLog.user_id == filters.user_id)
    if filters.user_email:
        conditions.append(_contains(ApiAuditLog.user_email, filters.user_email))
    if filters.user_role:
        conditions.append(ApiAuditLog.user_role == filters.user_role)
    if filters.endpoint_type:
        conditions.append(ApiAuditLog.endpoint_type == filters.endpoint_type)
    if filters.action:
        conditions.append(_contains(ApiAuditLog.action, filters.action))
    if filters.method:
        conditions.append(ApiAuditLog.method == filters.method.upper())
    if filters.status_code is not None:
        conditions.append(ApiAuditLog.status_code == filters.status_code)
    if filters.error_type:
        conditions.append(ApiAuditLog.error_type == filters.error_type)
    if filters.start_date is not None:
        conditions.append(ApiAuditLog.created_at >= filters.start_date)
    if filters.end_date is not None:
        conditions.append(ApiAuditLog.created_at <= filters.end_date)
    if filters.search and filters.search.strip():
        conditions.append(_search_condition(filters.search))
    return conditions


async def list_audit_logs(
    db: AsyncSession,
    filters: AuditLogFilters,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[ApiAuditLog], int, AuditLogStats]:
    """
    Filtered audit records, newest first.

    Returns:
        Tuple of (records, total matching count, stats over all matching records).
    """
    conditions = build_conditions(filters)

    stats_row = (await db.execute(
        select(
            func.count(ApiAuditLog.id),
            func.avg(ApiAuditLog.response_time_ms),
            func.count(ApiAuditLog.error_type),
        ).where(*conditions),
    )).one()
    total, average, error_count = stats_row

    result = await db.execute(
        select(ApiAuditLog)
        .where(*conditions)
        .order_by(ApiAuditLog.created_at.desc(), ApiAuditLog.id.desc())
        .offset(offset)
        .limit(limit),
    )
    stats = AuditLogStats(
        total_requests=total or 0,
        average_response_time_ms=round(float(average or 0), 2),
        error_count=error_count or 0,
    )
    return list(result.scalars().all()), total or 0, stats
