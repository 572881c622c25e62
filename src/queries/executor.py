"""
Dashboard Queries

DESIGN DECISION: Query execution is DETERMINISTIC.
Every number on the dashboard is computed here from the payments that
were actually loaded from storage. Nothing is cached between refreshes,
so a refresh always shows what the spreadsheet says.

Visibility rule: residents only ever see their own house's payments,
the admin sees everything.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, Field

from src.models.payment import PaymentRecord, PaymentStatus
from src.models.user import Role, Session, UserRecord


class PaymentQuery(BaseModel):
    """Filters for the payment table. Every field is optional."""

    house_id: Optional[str] = None
    status: Optional[PaymentStatus] = None
    month: Optional[str] = None
    year: Optional[int] = None
    limit: Optional[int] = Field(default=None, ge=1)


class DashboardSummary(BaseModel):
    """Headline numbers shown above the payment table."""

    total_count: int = 0
    pending_count: int = 0
    confirmed_count: int = 0
    confirmed_total: int = Field(default=0, description="Sum of confirmed amounts, in rupiah")
    resident_count: int = 0


def visible_payments(
    payments: Iterable[PaymentRecord],
    session: Session,
) -> list[PaymentRecord]:
    """
    Payments the session may see, newest first.

    Undated payments sort last.
    """
    if session.is_admin:
        visible = list(payments)
    else:
        visible = [p for p in payments if p.house_id == session.house_id]
    return sorted(visible, key=lambda p: p.sort_key, reverse=True)


class PaymentQueryExecutor:
    """
    Runs dashboard queries over the loaded payment list.

    GUARANTEES:
    - Only returns payments the session is allowed to see
    - Never invents or estimates amounts
    """

    def __init__(self, payments: Iterable[PaymentRecord] = ()):
        self._payments = list(payments)

    @property
    def payments(self) -> list[PaymentRecord]:
        return list(self._payments)

    def execute(self, session: Session, query: Optional[PaymentQuery] = None) -> list[PaymentRecord]:
        query = query or PaymentQuery()
        results = visible_payments(self._payments, session)

        if query.house_id:
            results = [p for p in results if p.house_id == query.house_id]
        if query.status:
            results = [p for p in results if p.status == query.status]
        if query.month:
            results = [p for p in results if p.month == query.month]
        if query.year:
            results = [p for p in results if p.year == query.year]
        if query.limit:
            results = results[:query.limit]

        return results

    def pending_for_review(self, session: Session) -> list[PaymentRecord]:
        """Pending payments, oldest first so the queue is worked in order."""
        pending = self.execute(session, PaymentQuery(status=PaymentStatus.PENDING))
        return list(reversed(pending))

    def summary(
        self,
        session: Session,
        users: Iterable[UserRecord] = (),
    ) -> DashboardSummary:
        visible = visible_payments(self._payments, session)
        confirmed = [p for p in visible if p.status == PaymentStatus.CONFIRMED]
        return DashboardSummary(
            total_count=len(visible),
            pending_count=sum(1 for p in visible if p.status == PaymentStatus.PENDING),
            confirmed_count=len(confirmed),
            confirmed_total=sum(p.amount for p in confirmed),
            resident_count=sum(1 for u in users if u.role == Role.RESIDENT),
        )

    def find(self, payment_id: str) -> Optional[PaymentRecord]:
        for payment in self._payments:
            if payment.id == payment_id:
                return payment
        return None


def format_rupiah(amount: int) -> str:
    """Rp 1.250.000 style, the way the receipts print it."""
    return "Rp " + f"{amount:,}".replace(",", ".")
