from decimal import Decimal

from billing_desk.cura.base import CuraApi
from billing_desk.cura.entities import Payment
from billing_desk.utils import to_decimal

PAYMENTS_URL = "/api/billing/payments"


class CuraPayment(CuraApi):

    def get_payments(self) -> list[Payment]:
        raw_payments = self.get(PAYMENTS_URL)

        payments = [
            Payment(
                id=raw_payment["id"],
                invoice_id=raw_payment["invoiceId"],
                patient_id=str(raw_payment.get("patientId") or ""),
                transaction_id=raw_payment.get("transactionId") or "",
                amount=to_decimal(raw_payment.get("amount")),
                currency=raw_payment.get("currency") or "GBP",
                payment_method=raw_payment.get("paymentMethod") or "",
                payment_status=raw_payment.get("paymentStatus") or "",
                payment_date=raw_payment.get("paymentDate"),
            )
            for raw_payment in raw_payments
        ]

        return payments

    def record_payment(self, payload: dict) -> dict | None:
        return self.post(PAYMENTS_URL, json=payload)

    def create_payment_intent(self, invoice_id: int, amount: Decimal, description: str) -> str | None:
        response = self.post(
            "/api/billing/create-payment-intent",
            json={"invoiceId": invoice_id, "amount": float(amount), "description": description},
        )
        return (response or {}).get("clientSecret")

    def process_payment(self, invoice_id: int, payment_intent_id: str) -> dict:
        response = self.post(
            "/api/billing/process-payment",
            json={"invoiceId": invoice_id, "paymentIntentId": payment_intent_id},
        )
        return response or {}
