"""Client-side revenue aggregation over invoices already fetched for the billing views."""

import csv
import io
import logging
from calendar import monthrange
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum

from billing_desk.cura.entities import Invoice, PricingEntry, User

logger = logging.getLogger(__name__)

OTHER_SERVICES = "Other Services"
TOTAL_LABEL = "Total"


class DateRange(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    LAST_MONTH = "last-month"
    THIS_QUARTER = "this-quarter"
    THIS_YEAR = "this-year"
    CUSTOM = "custom"


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def resolve_date_range(
    name: DateRange | str,
    now: datetime | None = None,
    start: date | None = None,
    end: date | None = None,
) -> tuple[datetime, datetime]:
    now = now or datetime.now()
    today = now.date()
    name = DateRange(name)

    if name == DateRange.TODAY:
        return _day_bounds(today, today)

    if name == DateRange.THIS_WEEK:
        # weeks start on Monday
        monday = today - timedelta(days=today.weekday())
        return _day_bounds(monday, monday + timedelta(days=6))

    if name == DateRange.THIS_MONTH:
        last_day = monthrange(today.year, today.month)[1]
        return _day_bounds(today.replace(day=1), today.replace(day=last_day))

    if name == DateRange.LAST_MONTH:
        last_of_previous = today.replace(day=1) - timedelta(days=1)
        return _day_bounds(last_of_previous.replace(day=1), last_of_previous)

    if name == DateRange.THIS_QUARTER:
        first_month = 3 * ((today.month - 1) // 3) + 1
        last_month = first_month + 2
        return _day_bounds(
            date(today.year, first_month, 1),
            date(today.year, last_month, monthrange(today.year, last_month)[1]),
        )

    if name == DateRange.THIS_YEAR:
        return _day_bounds(date(today.year, 1, 1), date(today.year, 12, 31))

    if start is None or end is None:
        raise ValueError("A custom date range needs both a start and an end date")
    if end < start:
        raise ValueError("The end of a custom date range cannot be before its start")
    return _day_bounds(start, end)


@dataclass
class ReportFilters:
    date_range: DateRange = DateRange.THIS_MONTH
    start: date | None = None
    end: date | None = None
    insurance_type: str = "all"
    role: str = "all"
    user_id: int | None = None
    patient_id: str | None = None
    search: str = ""

    def describe(self, now: datetime | None = None) -> str:
        range_start, range_end = resolve_date_range(self.date_range, now, self.start, self.end)
        parts = [f"{range_start:%d/%m/%Y} - {range_end:%d/%m/%Y}"]
        if self.insurance_type != "all":
            parts.append(f"Insurance: {self.insurance_type}")
        if self.role != "all":
            parts.append(f"Role: {self.role}")
        if self.user_id is not None:
            parts.append(f"User: {self.user_id}")
        if self.search:
            parts.append(f"Search: {self.search}")
        return " | ".join(parts)


@dataclass
class RevenueRow:
    service: str
    procedures: int = 0
    revenue: Decimal = Decimal("0")
    insurance: Decimal = Decimal("0")
    self_pay: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    is_total: bool = field(default=False, kw_only=True)

    @property
    def collection_rate(self) -> float:
        if self.total_amount <= 0:
            return 0.0
        rate = float(self.paid_amount / self.total_amount * 100)
        return min(max(rate, 0.0), 100.0)

    def add(self, invoice: Invoice):
        self.procedures += 1
        self.revenue += invoice.total_amount
        if invoice.is_self_pay:
            self.self_pay += invoice.total_amount
        else:
            self.insurance += invoice.total_amount
        self.total_amount += invoice.total_amount
        self.paid_amount += invoice.paid_amount


def _invoice_provider(invoice: Invoice) -> str:
    if invoice.insurance:
        return invoice.insurance.provider
    return invoice.insurance_provider or ""


def _matches_insurance(invoice: Invoice, insurance_type: str) -> bool:
    if insurance_type == "all":
        return True
    if insurance_type == "self-pay":
        return invoice.is_self_pay
    if insurance_type == "insurance":
        return not invoice.is_self_pay
    return _invoice_provider(invoice).lower() == insurance_type.lower()


def _matches_search(invoice: Invoice, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    haystack = (invoice.patient_name, invoice.patient_id, invoice.invoice_number or "")
    return any(needle in value.lower() for value in haystack)


def filter_invoices(
    invoices: list[Invoice],
    filters: ReportFilters,
    users: list[User] | None = None,
    now: datetime | None = None,
) -> list[Invoice]:
    range_start, range_end = resolve_date_range(filters.date_range, now, filters.start, filters.end)
    user_map = {user.id: user for user in users or []}

    selected = []
    for invoice in invoices:
        if invoice.date_of_service is None:
            continue
        if not range_start.date() <= invoice.date_of_service <= range_end.date():
            continue
        if not _matches_insurance(invoice, filters.insurance_type):
            continue
        if filters.patient_id and invoice.patient_id != filters.patient_id:
            continue
        if not _matches_search(invoice, filters.search):
            continue

        if filters.role != "all" or filters.user_id is not None:
            owner_id = invoice.provider_id or invoice.user_id
            owner = user_map.get(owner_id)
            if owner is None:
                logger.debug("Invoice %s has no known provider, excluded by user filters", invoice.label)
                continue
            if filters.role != "all" and owner.role.lower() != filters.role.lower():
                continue
            if filters.user_id is not None and owner.id != filters.user_id:
                continue

        selected.append(invoice)

    return selected


def resolve_service_name(invoice: Invoice, doctor_fees: list[PricingEntry]) -> str:
    fee_names = {fee.name.strip().lower(): fee.name for fee in doctor_fees if fee.name}

    for item in invoice.items:
        match = fee_names.get(item.description.strip().lower())
        if match:
            return match

    if invoice.service_type:
        return invoice.service_type.replace("_", " ").title()

    return OTHER_SERVICES


def total_row(rows: list[RevenueRow]) -> RevenueRow:
    total = RevenueRow(TOTAL_LABEL, is_total=True)
    for row in rows:
        total.procedures += row.procedures
        total.revenue += row.revenue
        total.insurance += row.insurance
        total.self_pay += row.self_pay
        total.total_amount += row.total_amount
        total.paid_amount += row.paid_amount
    return total


def build_revenue_breakdown(
    invoices: list[Invoice],
    doctor_fees: list[PricingEntry],
    filters: ReportFilters,
    users: list[User] | None = None,
    now: datetime | None = None,
) -> list[RevenueRow]:
    """Rows per resolved service name, sorted by revenue, with the Total row last."""
    groups: dict[str, RevenueRow] = defaultdict(lambda: RevenueRow(""))

    for invoice in filter_invoices(invoices, filters, users, now):
        name = resolve_service_name(invoice, doctor_fees)
        row = groups[name]
        row.service = name
        row.add(invoice)

    rows = sorted(groups.values(), key=lambda r: (-r.revenue, r.service))
    return rows + [total_row(rows)]


def summarize(rows: list[RevenueRow]) -> dict:
    total = next((row for row in rows if row.is_total), None) or total_row(rows)
    return {
        "total_revenue": total.revenue,
        "collected": total.paid_amount,
        "outstanding": max(total.total_amount - total.paid_amount, Decimal("0")),
        "invoice_count": total.procedures,
        "collection_rate": total.collection_rate,
    }


CSV_HEADER = [
    "Service",
    "Procedures",
    "Revenue",
    "Insurance",
    "Self-Pay",
    "Total Amount",
    "Paid Amount",
    "Collection Rate (%)",
]


def breakdown_to_csv(rows: list[RevenueRow]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(
            [
                row.service,
                row.procedures,
                f"{row.revenue:.2f}",
                f"{row.insurance:.2f}",
                f"{row.self_pay:.2f}",
                f"{row.total_amount:.2f}",
                f"{row.paid_amount:.2f}",
                f"{row.collection_rate:.1f}",
            ]
        )
    return buf.getvalue()
