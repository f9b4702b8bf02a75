"""Invoice lifecycle: creation, status changes, payments, claims, sending and deletion.

Every action talks to the backend through the ``cura`` clients, converts
failures into notices, and refreshes the cached ``billing`` collections
after a successful write so lists and reports reflect the server state.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Callable
from uuid import uuid4

from billing_desk.cache import QueryCache, QueryKey, Resource
from billing_desk.cura.branding import CuraBranding
from billing_desk.cura.entities import ClinicBranding, Invoice, InvoiceStatus, Patient, PaymentMethod
from billing_desk.cura.insurance import CuraInsurance
from billing_desk.cura.invoices import CuraInvoice
from billing_desk.cura.payments import CuraPayment
from billing_desk.documents import encode_pdf, invoice_filename, render_invoice_pdf, write_download
from billing_desk.errors import BillingError, PaymentDeclined, TransitionNotAllowed, friendly_delete_message
from billing_desk.forms import InvoiceForm, build_invoice_payload, needs_insurance_details, validate_invoice_form
from billing_desk.notices import Notifier
from billing_desk.utils import to_decimal

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset(
        {InvoiceStatus.PENDING, InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.PENDING: frozenset(
        {InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED}),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}


def allowed_transitions(current: InvoiceStatus) -> frozenset[InvoiceStatus]:
    return ALLOWED_TRANSITIONS[InvoiceStatus(current)]


def check_transition(current: InvoiceStatus, target: InvoiceStatus):
    current, target = InvoiceStatus(current), InvoiceStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise TransitionNotAllowed(current.value, target.value)


class NextStep(str, Enum):
    INVALID = "invalid"
    INSURANCE_DETAILS = "insurance-details"
    PAYMENT = "payment"
    SUCCESS = "success"
    FAILED = "failed"


class SendMethod(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    POST = "post"


@dataclass
class CreationOutcome:
    next_step: NextStep
    invoice: Invoice | None = None


def default_recipient(patient_name: str) -> dict[str, str]:
    """Placeholder contact details derived from the patient's name."""
    slug = ".".join(patient_name.lower().split()) or "patient"
    return {
        "email": f"{slug}@email.com",
        "phone": "+44 7700 900000",
        "address": f"{patient_name}\n123 Main Street\nLondon\nSW1A 1AA",
    }


def insurance_balance(invoice: Invoice) -> Decimal:
    insurance_paid = invoice.insurance.paid_amount if invoice.insurance else Decimal("0")
    return invoice.total_amount - insurance_paid


class InvoiceLifecycle:

    def __init__(
        self,
        invoices: CuraInvoice,
        payments: CuraPayment,
        insurance: CuraInsurance,
        cache: QueryCache,
        notifier: Notifier,
        branding: CuraBranding | None = None,
        currency: str = "GBP",
        currency_symbol: str = "£",
        due_days: int = 30,
        reports_dir: str = "reports",
        organization_id: int | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.invoices = invoices
        self.payments = payments
        self.insurance = insurance
        self.cache = cache
        self.notifier = notifier
        self.branding = branding
        self.currency = currency
        self.currency_symbol = currency_symbol
        self.due_days = due_days
        self.reports_dir = reports_dir
        self.organization_id = organization_id
        self.today = today

        self.form = InvoiceForm.blank(today(), due_days)
        self.field_errors: dict[str, str] = {}
        self.updating_status_ids: set[int] = set()
        self.payment_invoice: Invoice | None = None
        self.pending_delete: Invoice | None = None

    def list_invoices(self, status: InvoiceStatus | None = None) -> list[Invoice]:
        status_value = InvoiceStatus(status).value if status else None
        key = QueryKey.of(Resource.INVOICES, status=status_value)
        return self.cache.fetch(key, lambda: self.invoices.get_invoices(status_value))

    def doctor_invoices(self) -> dict[str, list[Invoice]]:
        return self.cache.fetch(QueryKey.of(Resource.DOCTOR_INVOICES), self.invoices.get_doctor_invoices)

    def find_invoice(self, invoice_id: int) -> Invoice | None:
        return next((invoice for invoice in self.list_invoices() if invoice.id == invoice_id), None)

    def _refresh(self):
        try:
            self.cache.refetch("billing")
        except BillingError as e:
            # dropped keys reload on next read
            logger.warning("Could not refresh billing data: %s", e)

    def reset_form(self):
        self.form = InvoiceForm.blank(self.today(), self.due_days)
        self.field_errors = {}

    def create_invoice(self, form: InvoiceForm | None = None) -> CreationOutcome:
        form = form or self.form
        self.field_errors = validate_invoice_form(form)
        if self.field_errors:
            logger.info("Invoice form has %s problem(s): %s", len(self.field_errors), sorted(self.field_errors))
            return CreationOutcome(NextStep.INVALID)

        if needs_insurance_details(form):
            return CreationOutcome(NextStep.INSURANCE_DETAILS)

        payload = build_invoice_payload(form, self.organization_id)
        try:
            invoice = self.invoices.create_invoice(payload)
        except BillingError as e:
            self.notifier.failure("Failed to Create Invoice", e, "Could not create the invoice")
            return CreationOutcome(NextStep.FAILED)

        logger.info("Created invoice %s for patient %s", invoice.label, invoice.patient_id)
        if form is self.form:
            self.reset_form()

        if form.payment_method == PaymentMethod.CASH:
            try:
                self._record_payment(invoice, method="cash", note="Cash payment taken at invoice creation")
            except BillingError as e:
                self._revert_cash_invoice(invoice)
                self.notifier.failure(
                    "Payment Not Recorded", e, "The invoice was created but its cash payment was not recorded"
                )
                self._refresh()
                return CreationOutcome(NextStep.FAILED, invoice)

        self._refresh()

        if form.payment_method == PaymentMethod.ONLINE:
            self.payment_invoice = invoice
            return CreationOutcome(NextStep.PAYMENT, invoice)

        self.notifier.dialog("Invoice Created", f"Invoice {invoice.label} has been created successfully")
        return CreationOutcome(NextStep.SUCCESS, invoice)

    def _record_payment(self, invoice: Invoice, method: str, note: str):
        payload = {
            "invoiceId": invoice.id,
            "patientId": invoice.patient_id,
            "transactionId": f"{method.upper()}-{uuid4().hex[:12].upper()}",
            "amount": str(invoice.total_amount),
            "currency": self.currency,
            "paymentMethod": method,
            "paymentProvider": method,
            "paymentStatus": "completed",
            "paymentDate": datetime.now().isoformat(timespec="seconds"),
            "metadata": {"notes": note},
        }
        self.payments.record_payment(payload)

    def _revert_cash_invoice(self, invoice: Invoice):
        changes = {"status": InvoiceStatus.PENDING.value, "paidAmount": "0"}
        try:
            self.invoices.update_invoice(invoice.id, changes)
        except BillingError as e:
            logger.error("Invoice %s is marked paid without a payment record: %s", invoice.label, e)
        else:
            invoice.status = InvoiceStatus.PENDING
            invoice.paid_amount = Decimal("0")

    def _mark_paid(self, invoice: Invoice):
        """Set status to paid and write the matching ledger row, undoing the status if the row fails."""
        self.invoices.update_status(invoice.id, InvoiceStatus.PAID)
        try:
            self._record_payment(invoice, method="manual", note=f"Marked paid from {invoice.status.value}")
        except BillingError:
            try:
                self.invoices.update_status(invoice.id, invoice.status)
            except BillingError as revert_error:
                logger.error(
                    "Invoice %s is marked paid without a payment record: %s", invoice.label, revert_error
                )
            raise

    def _change_status(self, invoice: Invoice, new_status: InvoiceStatus) -> bool:
        new_status = InvoiceStatus(new_status)
        if new_status == invoice.status:
            return False

        try:
            check_transition(invoice.status, new_status)
        except TransitionNotAllowed as e:
            self.notifier.failure("Update Failed", e, "This status change is not allowed")
            return False

        if invoice.id in self.updating_status_ids:
            logger.info("Invoice %s already has a status update in flight", invoice.label)
            return False

        self.updating_status_ids.add(invoice.id)
        try:
            if new_status == InvoiceStatus.PAID:
                self._mark_paid(invoice)
            else:
                self.invoices.update_status(invoice.id, new_status)
        except BillingError as e:
            self.notifier.failure("Update Failed", e, "Failed to update invoice status")
            return False
        finally:
            self.updating_status_ids.discard(invoice.id)

        logger.info("Invoice %s status %s -> %s", invoice.label, invoice.status.value, new_status.value)
        self.notifier.dialog("Status Updated", f"Invoice {invoice.label} is now {new_status.value}")
        self._refresh()
        return True

    def update_status_inline(self, invoice_id: int, new_status: InvoiceStatus) -> bool:
        """Status dropdown in the invoice table."""
        if invoice_id in self.updating_status_ids:
            return False

        invoice = self.find_invoice(invoice_id)
        if invoice is None:
            self.notifier.toast("Update Failed", f"Invoice {invoice_id} was not found", destructive=True)
            return False

        return self._change_status(invoice, new_status)

    def update_status(self, invoice: Invoice, new_status: InvoiceStatus) -> bool:
        """Status selector in the invoice detail dialog."""
        return self._change_status(invoice, new_status)

    def collect_online_payment(self, invoice: Invoice, confirm: Callable[[str], str]) -> bool:
        """Take a card payment through the hosted payment element.

        ``confirm`` receives the payment intent client secret, lets the
        processor collect and confirm the card, and returns the payment
        intent id. It raises ``PaymentDeclined`` when the charge fails.
        """
        try:
            client_secret = self.payments.create_payment_intent(
                invoice.id, invoice.total_amount, f"Invoice {invoice.label}"
            )
        except BillingError as e:
            self.notifier.failure("Payment Setup Failed", e, "Could not start the payment")
            return False

        if not client_secret:
            self.notifier.toast(
                "Payment Setup Failed", "The payment processor did not open a session", destructive=True
            )
            return False

        try:
            payment_intent_id = confirm(client_secret)
        except PaymentDeclined as e:
            self.notifier.failure("Payment Failed", e, "The payment was declined")
            return False

        try:
            result = self.payments.process_payment(invoice.id, payment_intent_id)
        except BillingError as e:
            self.notifier.failure("Payment Processing Failed", e, "The payment could not be confirmed")
            return False

        if not result.get("success"):
            self.notifier.toast(
                "Payment Processing Failed",
                result.get("message") or result.get("error") or "The payment could not be confirmed",
                destructive=True,
            )
            return False

        try:
            self.invoices.update_status(invoice.id, InvoiceStatus.PAID)
        except BillingError as e:
            self.notifier.failure("Update Failed", e, "Payment was taken but the invoice status was not updated")
            self._refresh()
            return False

        self.payment_invoice = None
        self.notifier.dialog(
            "Payment Successful",
            f"Payment of {self.currency_symbol}{invoice.total_amount:.2f} received for invoice {invoice.label}",
        )
        self._refresh()
        return True

    def submit_insurance_claim(self, invoice: Invoice, provider: str, claim_number: str) -> bool:
        self.field_errors = {}
        if not provider.strip():
            self.field_errors["provider"] = "Please select an insurance provider"
        if not claim_number.strip():
            self.field_errors["claim_number"] = "Please enter a claim number"
        if self.field_errors:
            return False

        try:
            self.insurance.submit_claim(invoice.id, provider.strip(), claim_number.strip())
        except BillingError as e:
            self.notifier.failure("Claim Submission Failed", e, "Could not submit the insurance claim")
            return False

        self.notifier.toast(
            "Claim Submitted", f"Claim {claim_number} submitted to {provider} for invoice {invoice.label}"
        )
        self._refresh()
        return True

    def record_insurance_payment(
        self,
        invoice: Invoice,
        amount_paid: str,
        claim_number: str | None = None,
        payment_date: date | None = None,
        insurance_provider: str | None = None,
        payment_reference: str | None = None,
        notes: str | None = None,
    ) -> bool:
        amount = to_decimal(amount_paid, default=None)
        if amount is None or not amount.is_finite() or amount <= 0:
            return False

        claim = invoice.insurance
        provider = claim.provider if claim else invoice.insurance_provider or ""
        try:
            self.insurance.record_payment(
                invoice.id,
                claim_number=claim_number or (claim.claim_number if claim else ""),
                amount_paid=amount,
                payment_date=payment_date or self.today(),
                insurance_provider=insurance_provider or provider,
                payment_reference=payment_reference,
                notes=notes,
            )
        except BillingError as e:
            self.notifier.failure("Failed to Record Payment", e, "Could not record the insurance payment")
            return False

        self.notifier.toast(
            "Insurance Payment Recorded", f"{self.currency_symbol}{amount:.2f} recorded for invoice {invoice.label}"
        )
        self._refresh()
        return True

    def _clinic_branding(self) -> tuple[ClinicBranding | None, ClinicBranding | None]:
        if self.branding is None:
            return None, None
        try:
            header = self.cache.fetch(QueryKey.of(Resource.CLINIC_HEADERS), self.branding.get_clinic_header)
            footer = self.cache.fetch(QueryKey.of(Resource.CLINIC_FOOTERS), self.branding.get_clinic_footer)
        except BillingError as e:
            logger.warning("Clinic branding unavailable, rendering without it: %s", e)
            return None, None
        return header, footer

    def render_pdf(self, invoice: Invoice) -> bytes:
        header, footer = self._clinic_branding()
        return render_invoice_pdf(invoice, header, footer, self.currency_symbol)

    def download_pdf(self, invoice: Invoice) -> Path:
        return write_download(self.reports_dir, invoice_filename(invoice), self.render_pdf(invoice))

    def send_invoice(
        self,
        invoice: Invoice,
        send_method: SendMethod = SendMethod.EMAIL,
        patient: Patient | None = None,
        recipient_email: str | None = None,
        recipient_phone: str | None = None,
        recipient_address: str | None = None,
        custom_message: str = "",
    ) -> bool:
        send_method = SendMethod(send_method)
        recipient = default_recipient(invoice.patient_name)
        contacts = []
        if patient is not None:
            contacts.append({"email": patient.email, "phone": patient.phone, "address": patient.address})
        contacts.append({"email": recipient_email, "phone": recipient_phone, "address": recipient_address})
        for overrides in contacts:
            recipient.update({key: value for key, value in overrides.items() if value})

        try:
            if send_method == SendMethod.EMAIL:
                # backend attaches the stored copy
                self.invoices.save_invoice_pdf(invoice, encode_pdf(self.render_pdf(invoice)))

            self.invoices.send_invoice(
                {
                    "invoiceId": invoice.id,
                    "sendMethod": send_method.value,
                    "recipientName": invoice.patient_name,
                    "recipientEmail": recipient["email"],
                    "recipientPhone": recipient["phone"],
                    "recipientAddress": recipient["address"],
                    "customMessage": custom_message,
                }
            )
        except BillingError as e:
            self.notifier.failure("Failed to Send Invoice", e, "The invoice could not be sent")
            return False

        destination = {SendMethod.EMAIL: "email", SendMethod.SMS: "phone", SendMethod.POST: "address"}[send_method]
        self.notifier.toast("Invoice Sent", f"Invoice {invoice.label} sent to {recipient[destination].splitlines()[0]}")
        self._refresh()
        return True

    def request_delete(self, invoice: Invoice):
        self.pending_delete = invoice

    def cancel_delete(self):
        self.pending_delete = None

    def confirm_delete(self) -> bool:
        invoice = self.pending_delete
        if invoice is None:
            return False

        try:
            self.invoices.delete_invoice(invoice.id)
        except BillingError as e:
            self.notifier.toast(
                "Delete Failed", friendly_delete_message(e, "Failed to delete invoice"), destructive=True
            )
            return False

        self.pending_delete = None
        logger.info("Deleted invoice %s", invoice.label)
        self.notifier.dialog("Invoice Deleted", f"Invoice {invoice.label} has been deleted")
        self._refresh()
        return True

    def delete_invoice(self, invoice: Invoice) -> bool:
        self.request_delete(invoice)
        return self.confirm_delete()
