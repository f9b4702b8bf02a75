import logging
from enum import Enum

from billing_desk.cura.base import CuraApi
from billing_desk.cura.entities import ClaimStatus, InsuranceClaim, Invoice, InvoicePayment, InvoiceStatus, LineItem
from billing_desk.errors import MalformedResponse
from billing_desk.utils import parse_date, to_decimal

logger = logging.getLogger(__name__)

INVOICES_URL = "/api/billing/invoices"
DOCTOR_INVOICE_SECTIONS = ("overall", "appointments", "labResults", "imaging")


def parse_status(enum_cls: type[Enum], value, fallback: Enum, record_id=None):
    if not value:
        return fallback
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Record %s has unknown %s %r, using %s", record_id, enum_cls.__name__, value, fallback.value)
        return fallback


def to_invoice(raw_invoice: dict) -> Invoice:
    try:
        return _to_invoice(raw_invoice)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Could not read invoice data: {e!r}") from e


def _to_invoice(raw_invoice: dict) -> Invoice:
    raw_insurance = raw_invoice.get("insurance")
    insurance = None
    if raw_insurance and raw_insurance.get("provider"):
        insurance = InsuranceClaim(
            provider=raw_insurance["provider"],
            claim_number=raw_insurance.get("claimNumber") or "",
            status=parse_status(ClaimStatus, raw_insurance.get("status"), ClaimStatus.PENDING, raw_invoice.get("id")),
            paid_amount=to_decimal(raw_insurance.get("paidAmount")),
        )

    return Invoice(
        id=raw_invoice["id"],
        invoice_number=raw_invoice.get("invoiceNumber"),
        organization_id=raw_invoice.get("organizationId"),
        patient_id=str(raw_invoice["patientId"]),
        patient_name=raw_invoice.get("patientName") or "",
        date_of_service=parse_date(raw_invoice.get("dateOfService")),
        invoice_date=parse_date(raw_invoice.get("invoiceDate")),
        due_date=parse_date(raw_invoice.get("dueDate")),
        status=parse_status(InvoiceStatus, raw_invoice.get("status"), InvoiceStatus.DRAFT, raw_invoice.get("id")),
        total_amount=to_decimal(raw_invoice.get("totalAmount")),
        paid_amount=to_decimal(raw_invoice.get("paidAmount")),
        payment_method=raw_invoice.get("paymentMethod"),
        nhs_number=raw_invoice.get("nhsNumber"),
        service_type=raw_invoice.get("serviceType"),
        insurance_provider=raw_invoice.get("insuranceProvider"),
        provider_id=raw_invoice.get("providerId"),
        user_id=raw_invoice.get("userId") or raw_invoice.get("createdBy"),
        notes=raw_invoice.get("notes"),
        insurance=insurance,
        items=[
            LineItem(
                code=raw_item.get("code") or "",
                description=raw_item.get("description") or "",
                quantity=to_decimal(raw_item.get("quantity")),
                unit_price=to_decimal(raw_item.get("unitPrice")),
                total=to_decimal(raw_item.get("total")),
            )
            for raw_item in raw_invoice.get("items") or []
        ],
        payments=[
            InvoicePayment(
                id=str(raw_payment.get("id")),
                amount=to_decimal(raw_payment.get("amount")),
                method=raw_payment.get("method") or "",
                date=raw_payment.get("date") or "",
                reference=raw_payment.get("reference"),
            )
            for raw_payment in raw_invoice.get("payments") or []
        ],
    )


class CuraInvoice(CuraApi):

    def get_invoices(self, status: str | None = None) -> list[Invoice]:
        params = {"status": status} if status else None
        raw_invoices = self.get(INVOICES_URL, params=params)
        return [to_invoice(raw_invoice) for raw_invoice in raw_invoices]

    def get_invoice(self, invoice_id: int) -> Invoice:
        return to_invoice(self.get(f"{INVOICES_URL}/{invoice_id}"))

    def create_invoice(self, payload: dict) -> Invoice:
        return to_invoice(self.post(INVOICES_URL, json=payload))

    def update_invoice(self, invoice_id: int, changes: dict) -> dict | None:
        return self.patch(f"{INVOICES_URL}/{invoice_id}", json=changes)

    def update_status(self, invoice_id: int, status: InvoiceStatus) -> dict | None:
        return self.update_invoice(invoice_id, {"status": status.value})

    def delete_invoice(self, invoice_id: int):
        return self.delete(f"{INVOICES_URL}/{invoice_id}")

    def get_doctor_invoices(self) -> dict[str, list[Invoice]]:
        raw_sections = self.get("/api/billing/doctor-invoices")
        return {
            section: [to_invoice(raw_invoice) for raw_invoice in raw_sections.get(section) or []]
            for section in DOCTOR_INVOICE_SECTIONS
        }

    def save_invoice_pdf(self, invoice: Invoice, pdf_base64: str) -> dict | None:
        payload = {"invoiceId": invoice.id, "invoiceNumber": invoice.invoice_number, "pdfData": pdf_base64}
        return self.post("/api/billing/save-invoice-pdf", json=payload)

    def send_invoice(self, payload: dict) -> dict | None:
        return self.post("/api/billing/send-invoice", json=payload)
