from datetime import date
from decimal import Decimal

from billing_desk.cura.base import CuraApi


class CuraInsurance(CuraApi):

    def submit_claim(self, invoice_id: int, provider: str, claim_number: str) -> dict | None:
        payload = {"invoiceId": invoice_id, "provider": provider, "claimNumber": claim_number}
        return self.post("/api/insurance/submit-claim", json=payload)

    def record_payment(
        self,
        invoice_id: int,
        claim_number: str,
        amount_paid: Decimal,
        payment_date: date,
        insurance_provider: str,
        payment_reference: str | None = None,
        notes: str | None = None,
    ) -> dict | None:
        payload = {
            "invoiceId": invoice_id,
            "claimNumber": claim_number,
            "amountPaid": str(amount_paid),
            "paymentDate": payment_date.isoformat(),
            "insuranceProvider": insurance_provider,
            "paymentReference": payment_reference,
            "notes": notes,
        }
        return self.post("/api/insurance/record-payment", json=payload)
