from billing_desk.cura.base import CuraApi
from billing_desk.cura.entities import CATALOG_ENTRY_TYPES, Catalog, ImagingService, PricingEntry
from billing_desk.errors import MalformedResponse
from billing_desk.utils import parse_date, to_decimal


def to_pricing_entry(catalog: Catalog, raw_entry: dict) -> PricingEntry:
    try:
        return _to_pricing_entry(catalog, raw_entry)
    except (AttributeError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Could not read {catalog.value} entry: {e!r}") from e


def _to_pricing_entry(catalog: Catalog, raw_entry: dict) -> PricingEntry:
    entry_type = CATALOG_ENTRY_TYPES[catalog]
    common = {
        "id": raw_entry.get("id"),
        "name": raw_entry.get(entry_type.name_field) or "",
        "code": raw_entry.get(entry_type.code_field),
        "base_price": to_decimal(raw_entry.get("basePrice")),
        "category": raw_entry.get("category"),
        "currency": raw_entry.get("currency") or "GBP",
        "is_active": raw_entry.get("isActive", True),
        "version": raw_entry.get("version") or 1,
        "notes": raw_entry.get("notes"),
        "effective_date": parse_date(raw_entry.get("effectiveDate")),
        "metadata": raw_entry.get("metadata") or {},
    }

    if entry_type is ImagingService:
        return ImagingService(**common, modality=raw_entry.get("modality"), body_part=raw_entry.get("bodyPart"))

    return entry_type(
        **common,
        doctor_id=raw_entry.get("doctorId"),
        doctor_name=raw_entry.get("doctorName"),
        doctor_role=raw_entry.get("doctorRole"),
    )


class CuraPricing(CuraApi):

    def get_entries(self, catalog: Catalog) -> list[PricingEntry]:
        raw_entries = self.get(f"/api/pricing/{catalog.value}")
        return [to_pricing_entry(catalog, raw_entry) for raw_entry in raw_entries]

    def create_entry(self, entry: PricingEntry) -> PricingEntry:
        raw_entry = self.post(f"/api/pricing/{entry.catalog.value}", json=entry.to_payload())
        return to_pricing_entry(entry.catalog, raw_entry or {})

    def update_entry(self, catalog: Catalog, entry_id: int, changes: dict) -> dict | None:
        return self.patch(f"/api/pricing/{catalog.value}/{entry_id}", json=changes)

    def delete_entry(self, catalog: Catalog, entry_id: int):
        return self.delete(f"/api/pricing/{catalog.value}/{entry_id}")

    def doctor_fee_exists(self, doctor_role: str, doctor_id: int) -> bool:
        params = {"doctorRole": doctor_role, "doctorId": doctor_id}
        response = self.get(f"/api/pricing/{Catalog.DOCTORS_FEES.value}/check-duplicate", params=params)
        return bool(response.get("exists"))
