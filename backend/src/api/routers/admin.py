"""Admin endpoints: audit logs, analytics, orders, users and stock levels."""
import logging
from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_request_user
from core.request_wrapper import AuthorizedRoute, admin_request
from schemas.audit_log import (
    AnalyticsPeriod,
    AnalyticsResponse,
    AuditLogListResponse,
    AuditLogResponse,
)
from schemas.auth import AdminUserListResponse, AdminUserResponse, UserResponse, UserRoleUpdate
from schemas.cached_user import CachedUser
from schemas.order import AdminOrderListResponse, AdminOrderResponse, OrderStatus, OrderStatusUpdate
from schemas.product import StockUpdate, StockUpdateResponse
from services import (
    analytics_service,
    audit_log_service,
    order_service,
    product_service,
    stock_notification_service,
    user_service,
)
from services.audit_log_service import AuditLogFilters
from services.order_service import AdminOrderFilters

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], route_class=AuthorizedRoute)


@router.get("/audit-logs", response_model=AuditLogListResponse)
@admin_request("admin_audit_logs")
async def list_audit_logs(
    user_id: UUID | None = Query(default=None),
    user_email: str | None = Query(default=None, max_length=255),
    user_role: str | None = Query(default=None, max_length=20),
    endpoint_type: str | None = Query(default=None, max_length=20),
    action: str | None = Query(default=None, max_length=100),
    method: str | None = Query(default=None, max_length=10),
    status_code: int | None = Query(default=None, ge=100, le=599),
    error_type: str | None = Query(default=None, max_length=100),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_session),
) -> AuditLogListResponse:
    """Browse API audit records, newest first, with aggregate stats."""
    filters = AuditLogFilters(
        user_id=user_id,
        user_email=user_email,
        user_role=user_role,
        endpoint_type=endpoint_type,
        action=action,
        method=method,
        status_code=status_code,
        error_type=error_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    records, total, stats = await audit_log_service.list_audit_logs(
        db, filters, offset=offset, limit=limit,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(record) for record in records],
        total=total,
        offset=offset,
        limit=limit,
        stats=stats,
    )


@router.get("/analytics", response_model=AnalyticsResponse)
@admin_request("admin_analytics")
async def get_analytics(
    period: AnalyticsPeriod = Query(default="30d"),
    db: AsyncSession = Depends(get_async_session),
) -> AnalyticsResponse:
    """Sales metrics for a period compared with the previous period."""
    return await analytics_service.get_analytics(db, period)


@router.get("/orders", response_model=AdminOrderListResponse)
@admin_request("admin_orders_list")
async def list_orders(
    status: OrderStatus | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    sort_by: str = Query(default="created_at", max_length=20),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_session),
) -> AdminOrderListResponse:
    """All orders with their customers, plus order counts per status."""
    filters = AdminOrderFilters(status=status, search=search, sort_by=sort_by, sort_order=sort_order)
    orders, total, status_counts = await order_service.list_admin_orders(
        db, filters, offset=offset, limit=limit,
    )
    return AdminOrderListResponse(
        items=[order_service.to_admin_response(order) for order in orders],
        total=total,
        offset=offset,
        limit=limit,
        status_counts=status_counts,
    )


@router.get("/orders/{order_id}", response_model=AdminOrderResponse)
@admin_request("admin_orders_get")
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> AdminOrderResponse:
    """Any order with its items and customer."""
    order = await order_service.get_admin_order(db, order_id)
    return order_service.to_admin_response(order)


@router.patch("/orders/{order_id}", response_model=AdminOrderResponse)
@admin_request("admin_orders_update")
async def update_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
) -> AdminOrderResponse:
    """
    Move an order to a new status.

    Shipping an order needs a tracking number; the carrier is detected from it.
    """
    order = await order_service.update_order_status(db, order_id, data.status, data.tracking_number)
    return order_service.to_admin_response(order)


@router.get("/users", response_model=AdminUserListResponse)
@admin_request("admin_users_list")
async def list_users(
    search: str | None = Query(default=None, max_length=255),
    role: str | None = Query(default=None, max_length=20),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_session),
) -> AdminUserListResponse:
    """Customer accounts, newest first."""
    customers, total = await user_service.list_customers(
        db, search=search, role=role, offset=offset, limit=limit,
    )
    return AdminUserListResponse(
        items=[AdminUserResponse.model_validate(customer) for customer in customers],
        total=total,
        offset=offset,
        limit=limit,
    )

@router.patch("/users/{user_id}", response_model=UserResponse)
@admin_request("admin_update_user")
async def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    request: Request,
    current_user: CachedUser = Depends(get_request_user),
    db: AsyncSession = Depends(get_async_session),
) -> UserResponse:
    """
    Change a customer's role.

    Cached sessions of the target user are dropped so the new role applies on
    their next request.
    """
    customer = await user_service.update_role(db, user_id, data.role)
    evicted = request.app.state.auth_cache.invalidate_user(customer.id)
    logger.info(
        "user_role_changed",
        extra={
            "user_id": str(customer.id),
            "role": customer.role,
            "changed_by": str(current_user.id),
            "cache_entries_evicted": evicted,
        },
    )
    return UserResponse.model_validate(customer)


@router.patch("/products/{product_id}/stock", response_model=StockUpdateResponse)
@admin_request("admin_update_stock")
async def update_stock(
    product_id: UUID,
    data: StockUpdate,
    db: AsyncSession = Depends(get_async_session),
) -> StockUpdateResponse:
    """
    Set a product's available stock.

    When a product comes back in stock, pending back-in-stock subscriptions
    are marked as notified.
    """
    inventory, previous = await product_service.set_stock(db, product_id, data.quantity_available)
    available = max(0, inventory.quantity_available - inventory.quantity_reserved)
    marked = 0
    if previous == 0 and available > 0:
        marked = await stock_notification_service.mark_pending_notified(db, product_id)
    return StockUpdateResponse(
        product_id=product_id,
        quantity_available=inventory.quantity_available,
        notifications_marked=marked,
    )
