"""Dashboard totals and period reports."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from loan_ledger.engine import compute_balance_due, compute_total_paid
from loan_ledger.models import Loan, LoanStatus

ZERO = Decimal("0")


def to_local(moment: date | datetime, tz: tzinfo | None = None) -> date | datetime:
    """Naive local time of an aware timestamp; dates and naive values pass through.

    ``tz`` defaults to the system time zone.
    """
    if isinstance(moment, datetime) and moment.tzinfo is not None:
        return moment.astimezone(tz).replace(tzinfo=None)
    return moment


@dataclass
class DashboardStats:
    """Headline figures for the operator dashboard."""

    total_clients: int
    active_loans: int
    total_loaned: Decimal  # Sum of principal
    total_received: Decimal
    pending_amount: Decimal  # Balance due over loans not yet completed


@dataclass
class ReportFilter:
    """Report criteria. Both date bounds are inclusive of the whole day.

    Aware timestamps are compared and bucketed in ``tz`` (default: the system
    time zone).
    """

    start_date: date | None = None
    end_date: date | None = None
    client_id: str | None = None
    status: LoanStatus | None = None
    tz: tzinfo | None = None

    def includes(self, moment: date | datetime | None) -> bool:
        """Whether a timestamp falls inside the date window."""
        if moment is None:
            return self.start_date is None and self.end_date is None
        if not isinstance(moment, datetime):
            moment = datetime.combine(moment, time.min)
        moment = to_local(moment, self.tz)
        if self.start_date is not None and moment < datetime.combine(self.start_date, time.min):
            return False
        if self.end_date is not None and moment > datetime.combine(self.end_date, time.max):
            return False
        return True


@dataclass
class MonthlyBucket:
    month: str  # M/YYYY, e.g. 3/2025
    count: int = 0
    amount: Decimal = ZERO


@dataclass
class Report:
    """Loans and receipts grouped by calendar month."""

    loans_by_month: list[MonthlyBucket] = field(default_factory=list)
    received_by_month: list[MonthlyBucket] = field(default_factory=list)
    status_counts: dict[str, int] = field(default_factory=dict)
    total_loaned: Decimal = ZERO
    total_received: Decimal = ZERO


def month_label(moment: date | datetime) -> str:
    return f"{moment.month}/{moment.year}"


def _group_by_month(items: Iterable[tuple[date | datetime, Decimal]]) -> list[MonthlyBucket]:
    buckets: dict[tuple[int, int], MonthlyBucket] = {}
    for moment, amount in items:
        key = (moment.year, moment.month)
        bucket = buckets.setdefault(key, MonthlyBucket(month=month_label(moment)))
        bucket.count += 1
        bucket.amount += amount
    return [buckets[key] for key in sorted(buckets)]


def _loan_date(loan: Loan) -> date | datetime | None:
    return loan.created_at or loan.start_date


def dashboard_stats(
    total_clients: int,
    loans: Sequence[Loan],
    records_by_loan: Mapping[str, Sequence[Any]],
) -> DashboardStats:
    """Compute dashboard figures.

    Parameters
    ----------
    total_clients : int
        Number of registered clients.
    loans : Sequence[Loan]
        All loans, with their cached status.
    records_by_loan : Mapping[str, Sequence[Any]]
        Confirmed records keyed by loan id, from one canonical source.
    """
    total_received = ZERO
    pending = ZERO
    for loan in loans:
        records = records_by_loan.get(loan.loan_id, [])
        total_received += compute_total_paid(records)
        if loan.status != LoanStatus.COMPLETED:
            pending += compute_balance_due(loan, records)

    return DashboardStats(
        total_clients=total_clients,
        active_loans=sum(1 for loan in loans if loan.status == LoanStatus.ACTIVE),
        total_loaned=sum((loan.amount for loan in loans), ZERO),
        total_received=total_received,
        pending_amount=pending,
    )


def build_report(
    loans: Sequence[Loan],
    records_by_loan: Mapping[str, Sequence[Any]],
    report_filter: ReportFilter | None = None,
) -> Report:
    """Group filtered loans and received amounts by month.

    Loans are filtered on creation date, client and status; received records
    on their own date and the client of their loan. The status filter applies
    to loans only.
    """
    report_filter = report_filter or ReportFilter()

    filtered_loans = [
        loan for loan in loans
        if report_filter.includes(_loan_date(loan))
        and (report_filter.client_id is None or loan.client_id == report_filter.client_id)
        and (report_filter.status is None or loan.status == report_filter.status)
    ]

    received: list[tuple[date | datetime, Decimal]] = []
    for loan in loans:
        if report_filter.client_id is not None and loan.client_id != report_filter.client_id:
            continue
        for record in records_by_loan.get(loan.loan_id, []):
            moment = getattr(record, "date", None)
            if moment is not None and report_filter.includes(moment):
                received.append((to_local(moment, report_filter.tz), compute_total_paid([record])))

    status_counts = {status.value: 0 for status in LoanStatus}
    for loan in filtered_loans:
        status_counts[loan.status.value] += 1

    return Report(
        loans_by_month=_group_by_month(
            (to_local(_loan_date(loan), report_filter.tz), loan.amount)
            for loan in filtered_loans
            if _loan_date(loan) is not None
        ),
        received_by_month=_group_by_month(received),
        status_counts=status_counts,
        total_loaned=sum((loan.amount for loan in filtered_loans), ZERO),
        total_received=sum((amount for _, amount in received), ZERO),
    )
