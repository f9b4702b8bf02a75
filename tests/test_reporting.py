"""Revenue breakdown: date ranges, filters, grouping and CSV export."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from billing_desk.cura.entities import DoctorFee, Invoice, InvoiceStatus, LineItem, User
from billing_desk.reporting import (
    CSV_HEADER,
    DateRange,
    ReportFilters,
    RevenueRow,
    breakdown_to_csv,
    build_revenue_breakdown,
    filter_invoices,
    resolve_date_range,
    resolve_service_name,
    summarize,
)

NOW = datetime(2025, 5, 28, 15, 30)  # a Wednesday

FEES = [DoctorFee(id=1, name="General Consultation", code="GC001", base_price=Decimal("50"))]
USERS = [
    User(id=1, first_name="Amir", last_name="Patel", email=None, role="doctor"),
    User(id=2, first_name="Sara", last_name="Jones", email=None, role="nurse"),
]


def _make_invoice(invoice_id, total, paid="0", day=date(2025, 5, 20), provider=None, description="", **kwargs):
    items = []
    if description:
        items = [LineItem("X", description, Decimal("1"), Decimal(total), Decimal(total))]
    return Invoice(
        id=invoice_id,
        invoice_number=f"INV-{invoice_id}",
        organization_id=1,
        patient_id=kwargs.pop("patient_id", "P1"),
        patient_name=kwargs.pop("patient_name", "Jane Smith"),
        date_of_service=day,
        invoice_date=day,
        due_date=day,
        status=InvoiceStatus.SENT,
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
        insurance_provider=provider,
        items=items,
        **kwargs,
    )


class TestResolveDateRange:
    def test_today(self):
        start, end = resolve_date_range(DateRange.TODAY, NOW)
        assert start == datetime(2025, 5, 28, 0, 0)
        assert end.date() == date(2025, 5, 28)
        assert end.hour == 23

    def test_week_starts_monday(self):
        start, end = resolve_date_range(DateRange.THIS_WEEK, NOW)
        assert (start.date(), end.date()) == (date(2025, 5, 26), date(2025, 6, 1))

    def test_last_month(self):
        start, end = resolve_date_range(DateRange.LAST_MONTH, NOW)
        assert (start.date(), end.date()) == (date(2025, 4, 1), date(2025, 4, 30))

    def test_quarter(self):
        start, end = resolve_date_range(DateRange.THIS_QUARTER, NOW)
        assert (start.date(), end.date()) == (date(2025, 4, 1), date(2025, 6, 30))

    def test_last_month_in_january(self):
        start, end = resolve_date_range(DateRange.LAST_MONTH, datetime(2025, 1, 15))
        assert (start.date(), end.date()) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_custom_needs_both_ends(self):
        with pytest.raises(ValueError):
            resolve_date_range(DateRange.CUSTOM, NOW, start=date(2025, 5, 1))

    def test_custom_rejects_reversed_range(self):
        with pytest.raises(ValueError):
            resolve_date_range(DateRange.CUSTOM, NOW, start=date(2025, 5, 10), end=date(2025, 5, 1))


class TestRevenueRow:
    def test_collection_rate_is_zero_without_revenue(self):
        """No billed amount means a 0% rate, never a division error."""
        assert RevenueRow("Empty").collection_rate == 0.0

    def test_collection_rate_is_clamped(self):
        row = RevenueRow("Overpaid", total_amount=Decimal("100"), paid_amount=Decimal("150"))
        assert row.collection_rate == 100.0


class TestFilterInvoices:
    def test_outside_range_is_excluded(self):
        invoices = [_make_invoice(1, "50"), _make_invoice(2, "50", day=date(2025, 4, 30))]
        selected = filter_invoices(invoices, ReportFilters(), now=NOW)
        assert [invoice.id for invoice in selected] == [1]

    def test_insurance_type(self):
        invoices = [_make_invoice(1, "50"), _make_invoice(2, "80", provider="Bupa")]
        self_pay = filter_invoices(invoices, ReportFilters(insurance_type="self-pay"), now=NOW)
        insured = filter_invoices(invoices, ReportFilters(insurance_type="insurance"), now=NOW)
        bupa = filter_invoices(invoices, ReportFilters(insurance_type="bupa"), now=NOW)
        assert [i.id for i in self_pay] == [1]
        assert [i.id for i in insured] == [2]
        assert [i.id for i in bupa] == [2]

    def test_role_and_user(self):
        invoices = [_make_invoice(1, "50", provider_id=1), _make_invoice(2, "50", user_id=2), _make_invoice(3, "50")]
        doctors = filter_invoices(invoices, ReportFilters(role="doctor"), USERS, now=NOW)
        nurse = filter_invoices(invoices, ReportFilters(user_id=2), USERS, now=NOW)
        assert [i.id for i in doctors] == [1]
        assert [i.id for i in nurse] == [2]

    def test_patient_and_search(self):
        invoices = [_make_invoice(1, "50"), _make_invoice(2, "50", patient_id="P2", patient_name="Tom Brown")]
        assert [i.id for i in filter_invoices(invoices, ReportFilters(patient_id="P2"), now=NOW)] == [2]
        assert [i.id for i in filter_invoices(invoices, ReportFilters(search="brown"), now=NOW)] == [2]
        assert [i.id for i in filter_invoices(invoices, ReportFilters(search="inv-1"), now=NOW)] == [1]


class TestResolveServiceName:
    def test_matches_doctor_fee(self):
        invoice = _make_invoice(1, "50", description="general consultation")
        assert resolve_service_name(invoice, FEES) == "General Consultation"

    def test_falls_back_to_service_type(self):
        invoice = _make_invoice(1, "50", description="Unknown", service_type="lab_result")
        assert resolve_service_name(invoice, FEES) == "Lab Result"

    def test_other_services(self):
        assert resolve_service_name(_make_invoice(1, "50"), FEES) == "Other Services"


class TestBuildRevenueBreakdown:
    def test_rows_are_grouped_and_sorted_with_total_last(self):
        invoices = [
            _make_invoice(1, "50", paid="50", description="General Consultation"),
            _make_invoice(2, "50", description="General Consultation", provider="Bupa"),
            _make_invoice(3, "200", paid="100", service_type="medical_image"),
        ]

        rows = build_revenue_breakdown(invoices, FEES, ReportFilters(), now=NOW)

        assert [row.service for row in rows] == ["Medical Image", "General Consultation", "Total"]
        consultation = rows[1]
        assert consultation.procedures == 2
        assert consultation.self_pay == Decimal("50")
        assert consultation.insurance == Decimal("50")
        assert consultation.collection_rate == 50.0

    def test_total_row_sums_every_field(self):
        """The Total row is the field-wise sum of the service rows."""
        invoices = [
            _make_invoice(1, "50", paid="50", description="General Consultation"),
            _make_invoice(2, "120", paid="20", provider="AXA", service_type="lab_result"),
        ]

        *rows, total = build_revenue_breakdown(invoices, FEES, ReportFilters(), now=NOW)

        assert total.is_total
        for attr in ("procedures", "revenue", "insurance", "self_pay", "total_amount", "paid_amount"):
            assert getattr(total, attr) == sum(getattr(row, attr) for row in rows)

    def test_empty_period_has_zero_total(self):
        rows = build_revenue_breakdown([], FEES, ReportFilters(), now=NOW)
        assert len(rows) == 1
        assert rows[0].collection_rate == 0.0

    def test_summary(self):
        rows = build_revenue_breakdown([_make_invoice(1, "80", paid="20")], FEES, ReportFilters(), now=NOW)
        summary = summarize(rows)
        assert summary["total_revenue"] == Decimal("80")
        assert summary["outstanding"] == Decimal("60")
        assert summary["invoice_count"] == 1
        assert summary["collection_rate"] == 25.0


class TestCsv:
    def test_header_and_rows(self):
        rows = build_revenue_breakdown([_make_invoice(1, "50", paid="50")], FEES, ReportFilters(), now=NOW)
        lines = breakdown_to_csv(rows).splitlines()
        assert lines[0] == ",".join(CSV_HEADER)
        assert lines[1] == "Other Services,1,50.00,0.00,50.00,50.00,50.00,100.0"
        assert lines[-1].startswith("Total,1,50.00")


class TestDescribe:
    def test_describe_lists_active_filters(self):
        filters = ReportFilters(date_range=DateRange.TODAY, insurance_type="self-pay", search="smith")
        assert filters.describe(NOW) == "28/05/2025 - 28/05/2025 | Insurance: self-pay | Search: smith"
