"""Dashboard query package."""

from src.queries.executor import (
    DashboardSummary,
    PaymentQuery,
    PaymentQueryExecutor,
    format_rupiah,
    visible_payments,
)

__all__ = [
    "DashboardSummary",
    "PaymentQuery",
    "PaymentQueryExecutor",
    "format_rupiah",
    "visible_payments",
]
