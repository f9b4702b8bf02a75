"""Invoice creation form: field state, validation and the outgoing payload."""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from billing_desk.cura.entities import InvoiceStatus, PaymentMethod
from billing_desk.utils import to_decimal

PATIENT_PLACEHOLDERS = ("loading", "no-patients")
SELF_PAY_PROVIDER = "None (Patient Self-Pay)"


@dataclass
class ServiceLine:
    code: str = ""
    description: str = ""
    quantity: str = "1"
    unit_price: str = ""

    @property
    def is_blank(self) -> bool:
        return not (self.code.strip() or self.description.strip() or self.unit_price.strip())


@dataclass
class InsuranceDetails:
    provider: str
    plan_type: str = ""
    policy_number: str = ""
    member_number: str = ""
    contact_phone: str = ""
    claim_number: str = ""

    def to_payload(self) -> dict:
        return {
            "provider": self.provider,
            "planType": self.plan_type or None,
            "policyNumber": self.policy_number or None,
            "memberNumber": self.member_number or None,
            "contactPhone": self.contact_phone or None,
            "claimNumber": self.claim_number,
            "status": "pending",
            "paidAmount": 0,
        }


@dataclass
class InvoiceForm:
    patient_id: str = ""
    patient_name: str = ""
    nhs_number: str = ""
    service_date: date | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    total_amount: str = ""
    payment_method: PaymentMethod = PaymentMethod.CASH
    service_type: str = "consultation"
    notes: str = ""
    insurance: InsuranceDetails | None = None
    lines: list[ServiceLine] = field(default_factory=lambda: [ServiceLine()])

    @classmethod
    def blank(cls, today: date, due_days: int = 30) -> "InvoiceForm":
        return cls(service_date=today, invoice_date=today, due_date=today + timedelta(days=due_days))

    @property
    def filled_lines(self) -> list[ServiceLine]:
        return [self.lines[0]] + [line for line in self.lines[1:] if not line.is_blank] if self.lines else []


def _positive(value: str) -> Decimal | None:
    number = to_decimal(value, default=None)
    if number is None or not number.is_finite() or number <= 0:
        return None
    return number


def validate_invoice_form(form: InvoiceForm) -> dict[str, str]:
    """Every problem with the form, keyed by field. Empty when it can be submitted."""
    errors: dict[str, str] = {}

    if not form.patient_id or form.patient_id in PATIENT_PLACEHOLDERS:
        errors["patient"] = "Please select a patient"

    if not form.service_date:
        errors["service_date"] = "Please select a service date"

    if form.due_date and form.invoice_date and form.due_date < form.invoice_date:
        errors["due_date"] = "Due date cannot be before the invoice date"

    if not form.lines:
        errors["service"] = "At least one service is required"

    for index, line in enumerate(form.filled_lines):
        prefix = "" if index == 0 else f"line_{index + 1}_"
        if not line.code.strip() or not line.description.strip():
            errors[f"{prefix}service"] = "Service code and description are required"
        if _positive(line.quantity) is None:
            errors[f"{prefix}quantity"] = "Quantity must be greater than 0"
        if _positive(line.unit_price) is None:
            errors[f"{prefix}unit_price"] = "Unit price must be greater than 0"

    if _positive(form.total_amount) is None:
        errors["total_amount"] = "Total amount must be greater than 0"

    return errors


def needs_insurance_details(form: InvoiceForm) -> bool:
    return form.payment_method == PaymentMethod.INSURANCE and not (form.insurance and form.insurance.provider.strip())


def build_invoice_payload(form: InvoiceForm, organization_id: int | None = None) -> dict:
    """Compose the POST body for a validated form.

    Cash is taken at the desk, so a cash invoice is created already paid in
    full. Online and insurance invoices start as pending with nothing paid.
    """
    total = to_decimal(form.total_amount)
    paid_up_front = form.payment_method == PaymentMethod.CASH
    insurance = form.insurance if form.payment_method == PaymentMethod.INSURANCE else None

    items = []
    for line in form.filled_lines:
        quantity = to_decimal(line.quantity)
        unit_price = to_decimal(line.unit_price)
        items.append(
            {
                "code": line.code.strip(),
                "description": line.description.strip(),
                "quantity": float(quantity),
                "unitPrice": float(unit_price),
                "total": float(quantity * unit_price),
            }
        )

    payload = {
        "patientId": form.patient_id,
        "patientName": form.patient_name,
        "nhsNumber": form.nhs_number or None,
        "serviceType": form.service_type,
        "dateOfService": form.service_date.isoformat(),
        "invoiceDate": (form.invoice_date or form.service_date).isoformat(),
        "dueDate": (form.due_date or form.service_date).isoformat(),
        "status": InvoiceStatus.PAID.value if paid_up_front else InvoiceStatus.PENDING.value,
        "paymentMethod": form.payment_method.value,
        "invoiceType": "insurance_claim" if insurance else "payment",
        "insuranceProvider": insurance.provider if insurance else SELF_PAY_PROVIDER,
        "subtotal": str(total),
        "tax": "0",
        "discount": "0",
        "totalAmount": str(total),
        "paidAmount": str(total) if paid_up_front else "0",
        "items": items,
        "notes": form.notes.strip() or None,
    }

    if insurance:
        payload["insurance"] = insurance.to_payload()
    if organization_id is not None:
        payload["organizationId"] = organization_id

    return payload
