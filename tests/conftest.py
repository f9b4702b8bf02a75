import json
import re
from datetime import date

import httpx
import pytest

from billing_desk.cache import QueryCache
from billing_desk.catalog import PricingCatalogManager
from billing_desk.cura.branding import CuraBranding
from billing_desk.cura.insurance import CuraInsurance
from billing_desk.cura.invoices import CuraInvoice
from billing_desk.cura.payments import CuraPayment
from billing_desk.cura.pricing import CuraPricing
from billing_desk.lifecycle import InvoiceLifecycle
from billing_desk.notices import Notifier

BASE_URL = "http://cura.test"
TODAY = date(2025, 5, 26)


class FakeCuraBackend:
    """In-memory stand-in for the billing API, served through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[tuple[str, str, dict | None]] = []
        self.headers: list[httpx.Headers] = []
        self.invoices: dict[int, dict] = {}
        self.payments: list[dict] = []
        self.pricing: dict[str, list[dict]] = {"doctors-fees": [], "lab-tests": [], "imaging": []}
        self.users: list[dict] = []
        self.patients: list[dict] = []
        self.clinic_headers: list[dict] = [{"clinicName": "Cura Health", "address": "1 High Street", "isActive": True}]
        self.clinic_footers: list[dict] = [{"clinicName": "Cura Health", "footerText": "Thank you", "isActive": True}]
        self.process_payment_result = {"success": True}
        self.failures: dict[tuple[str, str], tuple[int, object]] = {}
        self._next_id = 1

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def fail(self, method: str, path: str, status: int = 500, body: object = None):
        self.failures[(method, path)] = (status, body if body is not None else {"message": "Internal server error"})

    def add_invoice(self, **overrides) -> dict:
        invoice_id = overrides.pop("id", None) or self.next_id()
        invoice = {
            "id": invoice_id,
            "invoiceNumber": f"INV-{invoice_id:04d}",
            "organizationId": 1,
            "patientId": "P1",
            "patientName": "Jane Smith",
            "dateOfService": TODAY.isoformat(),
            "invoiceDate": TODAY.isoformat(),
            "dueDate": "2025-06-25",
            "status": "sent",
            "totalAmount": "50.00",
            "paidAmount": "0.00",
            "paymentMethod": "Cash",
            "serviceType": "consultation",
            "items": [
                {"code": "GC001", "description": "General Consultation", "quantity": 1, "unitPrice": 50, "total": 50}
            ],
            "payments": [],
        }
        invoice.update(overrides)
        self.invoices[invoice_id] = invoice
        return invoice

    def calls(self, method: str | None = None, path: str | None = None) -> list[tuple[str, str, dict | None]]:
        return [
            call
            for call in self.requests
            if (method is None or call[0] == method) and (path is None or call[1] == path)
        ]

    @property
    def mutations(self) -> list[tuple[str, str, dict | None]]:
        return [call for call in self.requests if call[0] != "GET"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))
        self.headers.append(request.headers)

        if (request.method, path) in self.failures:
            status, payload = self.failures[(request.method, path)]
            if isinstance(payload, str):
                return httpx.Response(status, text=payload)
            return httpx.Response(status, json=payload)

        return self.route(request, path, body)

    def route(self, request: httpx.Request, path: str, body: dict | None) -> httpx.Response:
        method = request.method

        if path == "/api/billing/invoices":
            if method == "GET":
                return httpx.Response(200, json=list(self.invoices.values()))
            invoice_id = self.next_id()
            invoice = {**body, "id": invoice_id, "invoiceNumber": f"INV-{invoice_id:04d}", "payments": []}
            self.invoices[invoice_id] = invoice
            return httpx.Response(201, json=invoice)

        match = re.fullmatch(r"/api/billing/invoices/(\d+)", path)
        if match:
            invoice_id = int(match.group(1))
            if invoice_id not in self.invoices:
                return httpx.Response(404, json={"message": "Invoice not found"})
            if method == "PATCH":
                self.invoices[invoice_id].update(body)
                return httpx.Response(200, json=self.invoices[invoice_id])
            if method == "DELETE":
                del self.invoices[invoice_id]
                return httpx.Response(200, json={"success": True})
            return httpx.Response(200, json=self.invoices[invoice_id])

        if path == "/api/billing/doctor-invoices":
            invoices = list(self.invoices.values())
            return httpx.Response(
                200,
                json={
                    "overall": invoices,
                    "appointments": [i for i in invoices if i.get("serviceType") == "consultation"],
                    "labResults": [i for i in invoices if i.get("serviceType") == "lab_result"],
                    "imaging": [i for i in invoices if i.get("serviceType") == "medical_image"],
                },
            )

        if path == "/api/billing/payments":
            if method == "GET":
                return httpx.Response(200, json=self.payments)
            payment = {**body, "id": self.next_id()}
            self.payments.append(payment)
            return httpx.Response(201, json=payment)

        if path == "/api/billing/create-payment-intent":
            return httpx.Response(200, json={"clientSecret": f"pi_{body['invoiceId']}_secret"})

        if path == "/api/billing/process-payment":
            return httpx.Response(200, json=self.process_payment_result)

        if path in ("/api/billing/send-invoice", "/api/billing/save-invoice-pdf"):
            return httpx.Response(200, json={"success": True})

        if path in ("/api/insurance/submit-claim", "/api/insurance/record-payment"):
            return httpx.Response(200, json={"success": True})

        match = re.fullmatch(r"/api/pricing/([a-z-]+?)(?:/(\d+|check-duplicate))?", path)
        if match:
            return self.route_pricing(method, match.group(1), match.group(2), request, body)

        reference = {
            "/api/users": self.users,
            "/api/patients": self.patients,
            "/api/clinic-headers": self.clinic_headers,
            "/api/clinic-footers": self.clinic_footers,
            "/api/roles": [{"name": "doctor", "displayName": "Doctor"}, {"name": "nurse"}],
        }
        if path in reference:
            return httpx.Response(200, json=reference[path])

        return httpx.Response(404, json={"message": f"No route for {method} {path}"})

    def route_pricing(self, method, catalog, suffix, request, body) -> httpx.Response:
        entries = self.pricing[catalog]

        if suffix == "check-duplicate":
            role = request.url.params.get("doctorRole")
            doctor_id = int(request.url.params.get("doctorId"))
            exists = any(e.get("doctorRole") == role and e.get("doctorId") == doctor_id for e in entries)
            return httpx.Response(200, json={"exists": exists})

        if suffix is None:
            if method == "GET":
                return httpx.Response(200, json=entries)
            entry = {**body, "id": self.next_id()}
            entries.append(entry)
            return httpx.Response(201, json=entry)

        entry = next((e for e in entries if e["id"] == int(suffix)), None)
        if entry is None:
            return httpx.Response(404, json={"message": "Pricing entry not found"})
        if method == "PATCH":
            entry.update(body)
            return httpx.Response(200, json=entry)
        entries.remove(entry)
        return httpx.Response(204)


@pytest.fixture
def backend() -> FakeCuraBackend:
    return FakeCuraBackend()


@pytest.fixture
def http_client(backend):
    with httpx.Client(transport=httpx.MockTransport(backend.handler), base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def make_api(http_client):
    def factory(api_cls, auth_token="test-token", subdomain="demo"):
        return api_cls(http_client=http_client, auth_token=auth_token, subdomain=subdomain)

    return factory


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture
def lifecycle(make_api, cache, notifier, tmp_path) -> InvoiceLifecycle:
    return InvoiceLifecycle(
        invoices=make_api(CuraInvoice),
        payments=make_api(CuraPayment),
        insurance=make_api(CuraInsurance),
        cache=cache,
        notifier=notifier,
        branding=make_api(CuraBranding),
        reports_dir=str(tmp_path),
        today=lambda: TODAY,
    )


@pytest.fixture
def catalog_manager(make_api, cache, notifier) -> PricingCatalogManager:
    return PricingCatalogManager(pricing=make_api(CuraPricing), cache=cache, notifier=notifier)
