"""
Payment Reporting

Read-only queries behind the admin dashboard: order history with filters
and revenue figures per calendar period.

Calendar periods and date filters are interpreted in the project time zone
(``TIME_ZONE``, Asia/Ho_Chi_Minh): ``endDate=2025-09-21`` covers that whole
local day. Orders are bucketed by ``created_at``. Revenue counts PAID orders
only, using the amount actually paid when PayOS reported one.

Author: Lingua Development Team
Version: 1.0.0
"""

from __future__ import annotations

import datetime
from typing import Any, Dict, Optional, Tuple

from django.conf import settings
from django.db.models import Count, Q, QuerySet, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.dateparse import parse_date

from .models import Order

HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 100

PAID = Q(status=Order.Status.PAID)


class InvalidReportFilter(ValueError):
    """A history filter could not be understood."""


def _local_midnight(day: datetime.date) -> datetime.datetime:
    return timezone.make_aware(datetime.datetime.combine(day, datetime.time.min))


def day_range(day: datetime.date) -> Tuple[datetime.datetime, datetime.datetime]:
    """Half-open ``[start, end)`` range covering one local calendar day."""
    return _local_midnight(day), _local_midnight(day + datetime.timedelta(days=1))


def week_range(day: datetime.date) -> Tuple[datetime.datetime, datetime.datetime]:
    """Monday to Sunday week containing ``day``."""
    monday = day - datetime.timedelta(days=day.weekday())
    return _local_midnight(monday), _local_midnight(monday + datetime.timedelta(days=7))


def month_range(day: datetime.date) -> Tuple[datetime.datetime, datetime.datetime]:
    first = day.replace(day=1)
    following = (first + datetime.timedelta(days=32)).replace(day=1)
    return _local_midnight(first), _local_midnight(following)


def local_today() -> datetime.date:
    return timezone.localdate()


def _parse_day(value: Optional[str], name: str) -> Optional[datetime.date]:
    if not value:
        return None
    try:
        day = parse_date(value)
    except ValueError:
        day = None
    if day is None:
        raise InvalidReportFilter(f"{name} must be a date in YYYY-MM-DD format")
    return day


def order_history(
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> QuerySet:
    """
    Orders for the admin history, newest first.

    Args:
        status: one of ``Order.Status``; ``None``, empty or ``"all"`` means any
        start_date: first local day to include (``YYYY-MM-DD``)
        end_date: last local day to include (``YYYY-MM-DD``)

    Raises:
        InvalidReportFilter: unknown status or unparseable date
    """
    queryset = Order.objects.select_related("buyer").order_by("-created_at")

    if status and status.lower() != "all":
        status = status.upper()
        if status not in Order.Status.values:
            raise InvalidReportFilter(f"Unknown status {status!r}")
        queryset = queryset.filter(status=status)

    start = _parse_day(start_date, "startDate")
    end = _parse_day(end_date, "endDate")
    if start is not None:
        queryset = queryset.filter(created_at__gte=day_range(start)[0])
    if end is not None:
        queryset = queryset.filter(created_at__lt=day_range(end)[1])
    return queryset


def paginate(queryset: QuerySet, page, limit) -> Tuple[QuerySet, Dict[str, int]]:
    """
    Slice ``queryset`` for ``page`` (1-based) of ``limit`` rows.

    Raises:
        InvalidReportFilter: page or limit is not a positive integer
    """
    try:
        page = int(page or 1)
        limit = min(int(limit or HISTORY_DEFAULT_LIMIT), HISTORY_MAX_LIMIT)
    except (TypeError, ValueError):
        raise InvalidReportFilter("page and limit must be integers")
    if page < 1 or limit < 1:
        raise InvalidReportFilter("page and limit must be positive")

    total = queryset.count()
    offset = (page - 1) * limit
    return queryset[offset : offset + limit], {
        "current": page,
        "pages": (total + limit - 1) // limit,
        "total": total,
        "limit": limit,
    }


def overall_statistics() -> Dict[str, Any]:
    by_status = {
        row["status"]: row["count"]
        for row in Order.objects.values("status").annotate(count=Count("id"))
    }
    totals = Order.objects.aggregate(
        total=Count("id"),
        revenue=Sum(Coalesce("amount_paid", "amount"), filter=PAID),
        held_for_review=Count("id", filter=~Q(review_reason="")),
        awaiting_grant=Count("id", filter=PAID & Q(granted_at__isnull=True)),
    )
    return {
        "totalOrders": totals["total"],
        "byStatus": {choice: by_status.get(choice, 0) for choice in Order.Status.values},
        "revenue": totals["revenue"] or 0,
        "currency": settings.PAYMENT_CURRENCY,
        "heldForReview": totals["held_for_review"],
        "awaitingGrant": totals["awaiting_grant"],
    }


def period_summary(start: datetime.datetime, end: datetime.datetime) -> Dict[str, int]:
    """Revenue and order counts for orders created in ``[start, end)``."""
    totals = Order.objects.filter(created_at__gte=start, created_at__lt=end).aggregate(
        transactions=Count("id"),
        paid=Count("id", filter=PAID),
        revenue=Sum(Coalesce("amount_paid", "amount"), filter=PAID),
    )
    return {
        "revenue": totals["revenue"] or 0,
        "transactions": totals["transactions"],
        "paid": totals["paid"],
    }


def success_rate() -> Dict[str, Any]:
    """Share of all orders that ended PAID, in percent with one decimal."""
    totals = Order.objects.aggregate(total=Count("id"), paid=Count("id", filter=PAID))
    total, paid = totals["total"], totals["paid"]
    rate = round(paid * 100 / total, 1) if total else 0.0
    return {"totalTransactions": total, "paidTransactions": paid, "successRate": rate}
