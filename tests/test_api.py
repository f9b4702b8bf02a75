"""HTTP clients: headers, error mapping and payload shapes."""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from billing_desk.cura.entities import Catalog, ClaimStatus, DoctorFee, InvoiceStatus
from billing_desk.cura.insurance import CuraInsurance
from billing_desk.cura.invoices import CuraInvoice, to_invoice
from billing_desk.cura.pricing import CuraPricing, to_pricing_entry
from billing_desk.cura.users import CuraUser
from billing_desk.errors import ApiError, MalformedResponse, NotFoundError, friendly_delete_message

TODAY = date(2025, 5, 26)


class TestHeaders:
    def test_tenant_and_bearer_are_sent(self, backend, make_api):
        make_api(CuraInvoice, auth_token="secret", subdomain="northside").get_invoices()
        headers = backend.headers[-1]
        assert headers["X-Tenant-Subdomain"] == "northside"
        assert headers["Authorization"] == "Bearer secret"

    def test_no_authorization_without_token(self, backend, make_api):
        make_api(CuraInvoice, auth_token="").get_invoices()
        assert "Authorization" not in backend.headers[-1]


class TestErrors:
    def test_json_message_is_used(self, backend, make_api):
        backend.fail("GET", "/api/billing/invoices", status=400, body={"message": "Bad status filter"})
        with pytest.raises(ApiError) as excinfo:
            make_api(CuraInvoice).get_invoices()
        assert str(excinfo.value) == "Bad status filter"
        assert excinfo.value.status_code == 400

    def test_plain_text_body_is_used(self, backend, make_api):
        backend.fail("GET", "/api/billing/invoices", status=502, body="Upstream unavailable")
        with pytest.raises(ApiError, match="Upstream unavailable"):
            make_api(CuraInvoice).get_invoices()

    def test_not_found_has_its_own_type(self, make_api):
        with pytest.raises(NotFoundError):
            make_api(CuraInvoice).delete_invoice(999)

    def test_transport_failure_becomes_api_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(refuse), base_url="http://cura.test") as client:
            api = CuraInvoice(http_client=client, auth_token="", subdomain="demo")
            with pytest.raises(ApiError, match="Could not reach the server"):
                api.get_invoices()


class TestFriendlyDeleteMessage:
    def test_not_found(self):
        message = friendly_delete_message(NotFoundError("Invoice not found", 404), "fallback")
        assert message == "This entry no longer exists. It may have already been deleted."

    def test_plain_message_is_kept(self):
        assert friendly_delete_message(ApiError("Entry is in use", 409), "fallback") == "Entry is in use"

    def test_structured_message_falls_back(self):
        assert friendly_delete_message(ApiError('{"code": "E42"}', 500), "fallback") == "fallback"


class TestInvoiceParsing:
    def test_camel_case_fields(self, backend):
        raw = backend.add_invoice(
            status="overdue",
            totalAmount="120.50",
            paidAmount="20",
            createdBy=4,
            insurance={"provider": "Bupa", "claimNumber": "CLM-1", "status": "approved", "paidAmount": "80"},
        )
        invoice = to_invoice(raw)

        assert invoice.status == InvoiceStatus.OVERDUE
        assert invoice.total_amount == Decimal("120.50")
        assert invoice.outstanding == Decimal("100.50")
        assert invoice.date_of_service == TODAY
        assert invoice.user_id == 4
        assert invoice.insurance.status == ClaimStatus.APPROVED
        assert not invoice.is_self_pay
        assert invoice.items[0].code == "GC001"

    def test_submitted_and_paid_claims(self, backend):
        for status in ("submitted", "paid"):
            raw = backend.add_invoice(insurance={"provider": "Bupa", "claimNumber": "CLM-1", "status": status})
            assert to_invoice(raw).insurance.status == ClaimStatus(status)

    def test_unknown_statuses_fall_back_with_a_warning(self, backend, caplog):
        raw = backend.add_invoice(
            status="refunded", insurance={"provider": "Bupa", "claimNumber": "CLM-1", "status": "in_review"}
        )
        invoice = to_invoice(raw)

        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.insurance.status == ClaimStatus.PENDING
        assert "unknown InvoiceStatus 'refunded'" in caplog.text
        assert "unknown ClaimStatus 'in_review'" in caplog.text

    def test_unreadable_record_is_an_api_error(self, backend):
        with pytest.raises(MalformedResponse, match="Could not read invoice data"):
            to_invoice(backend.add_invoice(dateOfService="26 May"))

    def test_self_pay_provider(self, backend):
        invoice = to_invoice(backend.add_invoice(insuranceProvider="None (Patient Self-Pay)"))
        assert invoice.is_self_pay

    def test_status_filter_is_passed(self, backend, make_api):
        make_api(CuraInvoice).get_invoices(status="paid")
        assert backend.requests[-1][:2] == ("GET", "/api/billing/invoices")

    def test_doctor_invoice_sections(self, backend, make_api):
        backend.add_invoice(serviceType="consultation")
        backend.add_invoice(serviceType="lab_result")
        sections = make_api(CuraInvoice).get_doctor_invoices()
        assert len(sections["overall"]) == 2
        assert len(sections["appointments"]) == 1
        assert len(sections["labResults"]) == 1
        assert sections["imaging"] == []


class TestPricing:
    def test_doctor_fee_fields(self):
        entry = to_pricing_entry(
            Catalog.DOCTORS_FEES,
            {
                "id": 3,
                "serviceName": "General Consultation",
                "serviceCode": "GC001",
                "basePrice": "50.00",
                "doctorId": 9,
            },
        )
        assert isinstance(entry, DoctorFee)
        assert entry.name == "General Consultation"
        assert entry.base_price == Decimal("50.00")
        assert entry.doctor_id == 9

    def test_create_posts_catalog_field_names(self, backend, make_api):
        entry = DoctorFee(id=None, name="Follow-up", code="FU001", base_price=Decimal("30"), doctor_id=2)
        created = make_api(CuraPricing).create_entry(entry)

        method, path, body = backend.requests[-1]
        assert (method, path) == ("POST", "/api/pricing/doctors-fees")
        assert body["serviceName"] == "Follow-up"
        assert body["basePrice"] == "30"
        assert created.id is not None

    def test_duplicate_check(self, backend, make_api):
        backend.pricing["doctors-fees"].append({"id": 1, "doctorRole": "doctor", "doctorId": 5})
        pricing = make_api(CuraPricing)
        assert pricing.doctor_fee_exists("doctor", 5)
        assert not pricing.doctor_fee_exists("nurse", 5)


class TestInsuranceApi:
    def test_record_payment_payload(self, backend, make_api):
        make_api(CuraInsurance).record_payment(
            1, "CLM-1", Decimal("80.00"), TODAY, "Bupa", payment_reference="REF-7"
        )
        _, path, body = backend.requests[-1]
        assert path == "/api/insurance/record-payment"
        assert body["amountPaid"] == "80.00"
        assert body["paymentDate"] == "2025-05-26"
        assert body["paymentReference"] == "REF-7"


class TestUsers:
    def test_role_names_prefer_display_name(self, make_api):
        assert make_api(CuraUser).get_role_names() == ["Doctor", "nurse"]
