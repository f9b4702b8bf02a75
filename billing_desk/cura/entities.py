from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    ONLINE = "Online Payment"
    INSURANCE = "Insurance"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    DENIED = "denied"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class Catalog(str, Enum):
    DOCTORS_FEES = "doctors-fees"
    LAB_TESTS = "lab-tests"
    IMAGING = "imaging"


@dataclass
class LineItem:
    code: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal

    def to_payload(self) -> dict:
        return {
            "code": self.code,
            "description": self.description,
            "quantity": float(self.quantity),
            "unitPrice": float(self.unit_price),
            "total": float(self.total),
        }


@dataclass
class InsuranceClaim:
    provider: str
    claim_number: str
    status: ClaimStatus
    paid_amount: Decimal


@dataclass
class InvoicePayment:
    id: str
    amount: Decimal
    method: str
    date: str
    reference: str | None = None


@dataclass
class Invoice:
    id: int
    invoice_number: str | None
    organization_id: int | None
    patient_id: str
    patient_name: str
    date_of_service: date | None
    invoice_date: date | None
    due_date: date | None
    status: InvoiceStatus
    total_amount: Decimal
    paid_amount: Decimal
    payment_method: str | None = None
    nhs_number: str | None = None
    service_type: str | None = None
    insurance_provider: str | None = None
    provider_id: int | None = None
    user_id: int | None = None
    notes: str | None = None
    insurance: InsuranceClaim | None = None
    items: list[LineItem] = field(default_factory=list, kw_only=True)
    payments: list[InvoicePayment] = field(default_factory=list, kw_only=True)

    @property
    def label(self) -> str:
        return self.invoice_number or f"#{self.id}"

    @property
    def is_self_pay(self) -> bool:
        provider = self.insurance.provider if self.insurance else self.insurance_provider
        return not provider or provider.lower().startswith("none")

    @property
    def outstanding(self) -> Decimal:
        return max(self.total_amount - self.paid_amount, Decimal("0"))


@dataclass
class Payment:
    id: int
    invoice_id: int
    patient_id: str
    transaction_id: str
    amount: Decimal
    currency: str
    payment_method: str
    payment_status: str
    payment_date: str | None


@dataclass
class PricingEntry:
    id: int | None
    name: str
    code: str | None
    base_price: Decimal
    category: str | None = None
    currency: str = "GBP"
    is_active: bool = True
    version: int = 1
    notes: str | None = None
    effective_date: date | None = None
    metadata: dict = field(default_factory=dict)

    catalog = None
    name_field = "name"
    code_field = "code"

    def to_payload(self) -> dict:
        payload = {
            self.name_field: self.name,
            self.code_field: self.code,
            "category": self.category,
            "basePrice": str(self.base_price),
            "currency": self.currency,
            "isActive": self.is_active,
            "version": self.version,
            "notes": self.notes,
            "effectiveDate": self.effective_date.isoformat() if self.effective_date else None,
        }
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


@dataclass(kw_only=True)
class DoctorFee(PricingEntry):
    doctor_id: int | None = None
    doctor_name: str | None = None
    doctor_role: str | None = None

    catalog = Catalog.DOCTORS_FEES
    name_field = "serviceName"
    code_field = "serviceCode"

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(doctorId=self.doctor_id, doctorName=self.doctor_name, doctorRole=self.doctor_role)
        return payload


@dataclass(kw_only=True)
class LabTest(PricingEntry):
    doctor_id: int | None = None
    doctor_name: str | None = None
    doctor_role: str | None = None

    catalog = Catalog.LAB_TESTS
    name_field = "testName"
    code_field = "testCode"

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(doctorId=self.doctor_id, doctorName=self.doctor_name, doctorRole=self.doctor_role)
        return payload


@dataclass(kw_only=True)
class ImagingService(PricingEntry):
    modality: str | None = None
    body_part: str | None = None

    catalog = Catalog.IMAGING
    name_field = "imagingType"
    code_field = "imagingCode"

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(modality=self.modality, bodyPart=self.body_part)
        return payload


CATALOG_ENTRY_TYPES: dict[Catalog, type[PricingEntry]] = {
    Catalog.DOCTORS_FEES: DoctorFee,
    Catalog.LAB_TESTS: LabTest,
    Catalog.IMAGING: ImagingService,
}


@dataclass
class Patient:
    id: int
    patient_id: str
    first_name: str
    last_name: str
    nhs_number: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class User:
    id: int
    first_name: str
    last_name: str
    email: str | None
    role: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class ClinicBranding:
    """Clinic header or footer text used on printed documents."""

    clinic_name: str
    lines: list[str] = field(default_factory=list)
    is_active: bool = True
