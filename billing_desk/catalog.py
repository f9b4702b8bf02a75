import logging
from dataclasses import dataclass
from decimal import Decimal

from billing_desk.cache import QueryCache, QueryKey, Resource
from billing_desk.cura.entities import Catalog, DoctorFee, ImagingService, LabTest, PricingEntry
from billing_desk.cura.pricing import CuraPricing
from billing_desk.defaults import canonical_entries
from billing_desk.errors import BillingError, friendly_delete_message
from billing_desk.notices import Notifier
from billing_desk.utils import to_decimal

logger = logging.getLogger(__name__)

CATALOG_RESOURCES = {
    Catalog.DOCTORS_FEES: Resource.DOCTORS_FEES,
    Catalog.LAB_TESTS: Resource.LAB_TESTS,
    Catalog.IMAGING: Resource.IMAGING,
}

CATALOG_LABELS = {
    Catalog.DOCTORS_FEES: "doctor fees",
    Catalog.LAB_TESTS: "lab tests",
    Catalog.IMAGING: "imaging services",
}


def positive_price(value) -> Decimal | None:
    price = to_decimal(value, default=None)
    if price is None or not price.is_finite() or price <= 0:
        return None
    return price


@dataclass
class PriceRow:
    """One row of a bulk-add form."""

    name: str = ""
    price: str = ""
    code: str = ""
    category: str = ""
    modality: str = ""
    body_part: str = ""

    @property
    def base_price(self) -> Decimal | None:
        return positive_price(self.price)


@dataclass
class SeedResult:
    inserted: int
    already_existed: int
    failed: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.already_existed + self.failed


class PricingCatalogManager:
    """Doctor fees, lab tests and imaging price lists, one tab loaded at a time."""

    def __init__(self, pricing: CuraPricing, cache: QueryCache, notifier: Notifier, currency: str = "GBP"):
        self.pricing = pricing
        self.cache = cache
        self.notifier = notifier
        self.currency = currency
        self.active_tab = Catalog.DOCTORS_FEES
        self.field_errors: dict[str, str] = {}

    def select_tab(self, catalog: Catalog):
        self.active_tab = Catalog(catalog)

    def entries(self, catalog: Catalog) -> list[PricingEntry]:
        if catalog != self.active_tab:
            return []
        key = QueryKey.of(CATALOG_RESOURCES[catalog])
        return self.cache.fetch(key, lambda: self.pricing.get_entries(catalog))

    def _refresh(self):
        try:
            self.cache.refetch("pricing")
        except BillingError as e:
            logger.warning("Could not refresh pricing catalogs: %s", e)

    def _valid_rows(self, rows: list[PriceRow]) -> list[PriceRow]:
        valid = [row for row in rows if row.name.strip() and row.base_price is not None]
        skipped = len(rows) - len(valid)
        if skipped:
            logger.info("Skipping %s incomplete price rows", skipped)
        return valid

    def _build_entry(self, catalog: Catalog, row: PriceRow, **doctor) -> PricingEntry:
        common = {
            "id": None,
            "name": row.name.strip(),
            "code": row.code.strip() or None,
            "category": row.category.strip() or None,
            "base_price": row.base_price,
            "currency": self.currency,
        }
        if catalog == Catalog.IMAGING:
            return ImagingService(**common, modality=row.modality or None, body_part=row.body_part or None)
        if catalog == Catalog.LAB_TESTS:
            return LabTest(**common, **doctor)
        return DoctorFee(**common, **doctor)

    def _insert(self, catalog: Catalog, entries: list[PricingEntry]) -> list[PricingEntry]:
        created = []
        for entry in entries:
            try:
                created.append(self.pricing.create_entry(entry))
            except BillingError as e:
                self.notifier.failure(f"Failed to Add {CATALOG_LABELS[catalog].title()}", e, "Could not save the entry")
                break
        if created:
            self._refresh()
        return created

    def add_doctor_fees(
        self, doctor_role: str, doctor_id: int | None, doctor_name: str, rows: list[PriceRow]
    ) -> list[PricingEntry]:
        self.field_errors = {}
        if not doctor_role:
            self.field_errors["role"] = "Please select a role"
        if doctor_id is None or not doctor_name:
            self.field_errors["name"] = "Please select a name"
        if self.field_errors:
            return []

        valid = self._valid_rows(rows)
        if not valid:
            self.notifier.toast(
                "Validation Error", "Please add at least one service with a name and a price above 0", destructive=True
            )
            return []

        try:
            duplicate = self.pricing.doctor_fee_exists(doctor_role, doctor_id)
        except BillingError as e:
            self.notifier.failure("Failed to Add Doctor Fees", e, "Could not check for existing fees")
            return []

        if duplicate:
            self.notifier.toast(
                "Duplicate Entry",
                f"Fees for {doctor_name} ({doctor_role}) already exist. Edit the existing entry instead.",
                destructive=True,
            )
            return []

        entries = [
            self._build_entry(
                Catalog.DOCTORS_FEES, row, doctor_id=doctor_id, doctor_name=doctor_name, doctor_role=doctor_role
            )
            for row in valid
        ]
        created = self._insert(Catalog.DOCTORS_FEES, entries)
        if len(created) == len(entries):
            self.notifier.toast("Doctor Fees Added", f"Added {len(created)} fee(s) for {doctor_name}")
        return created

    def add_entries(self, catalog: Catalog, rows: list[PriceRow]) -> list[PricingEntry]:
        """Bulk add lab tests or imaging services, skipping codes the catalog already has."""
        self.field_errors = {}
        valid = self._valid_rows(rows)
        if not valid:
            self.notifier.toast(
                "Validation Error", "Please add at least one row with a name and a price above 0", destructive=True
            )
            return []

        try:
            existing = self.pricing.get_entries(catalog)
        except BillingError as e:
            self.notifier.failure(f"Failed to Add {CATALOG_LABELS[catalog].title()}", e, "Could not load the catalog")
            return []

        taken = {entry.code.strip().upper() for entry in existing if entry.code}
        entries = []
        duplicates = 0
        for row in valid:
            code = row.code.strip().upper()
            if code and code in taken:
                duplicates += 1
                logger.info("Code %s already exists in %s, skipping", code, catalog.value)
                continue
            if code:
                taken.add(code)
            entries.append(self._build_entry(catalog, row))

        if not entries:
            self.notifier.toast(
                "Duplicate Entry", "Every code you entered already exists in this catalog", destructive=True
            )
            return []

        created = self._insert(catalog, entries)
        if len(created) == len(entries):
            description = f"Added {len(created)} {CATALOG_LABELS[catalog]}"
            if duplicates:
                description += f" ({duplicates} skipped, code already exists)"
            self.notifier.toast("Pricing Added", description)
        return created

    def update_entry(self, entry: PricingEntry, **changes) -> bool:
        self.field_errors = {}
        new_price = None
        if changes.get("base_price") is not None:
            new_price = positive_price(changes["base_price"])
            if new_price is None:
                self.field_errors["base_price"] = "Price must be greater than 0"
                return False

        payload = {}
        if "name" in changes:
            payload[entry.name_field] = changes["name"]
        if "code" in changes:
            payload[entry.code_field] = changes["code"]
        for attr, api_field in (("category", "category"), ("is_active", "isActive"), ("notes", "notes")):
            if attr in changes:
                payload[api_field] = changes[attr]
        if "effective_date" in changes:
            effective_date = changes["effective_date"]
            payload["effectiveDate"] = effective_date.isoformat() if effective_date else None

        if new_price is not None and new_price != entry.base_price:
            payload["basePrice"] = str(new_price)
            payload["version"] = entry.version + 1
            payload["metadata"] = {**entry.metadata, "previousPrice": float(entry.base_price)}

        if not payload:
            return False

        try:
            self.pricing.update_entry(entry.catalog, entry.id, payload)
        except BillingError as e:
            self.notifier.failure("Update Failed", e, "Could not update the price")
            return False

        self.notifier.toast("Price Updated", f"{entry.name} has been updated")
        self._refresh()
        return True

    def seed_defaults(self, catalog: Catalog) -> SeedResult | None:
        label = CATALOG_LABELS[catalog]
        try:
            existing = self.pricing.get_entries(catalog)
        except BillingError as e:
            self.notifier.failure(f"Failed to Add Default {label.title()}", e, "Could not load the catalog")
            return None

        existing_codes = {entry.code.strip().upper() for entry in existing if entry.code}
        canonical = canonical_entries(catalog, self.currency)
        missing = [entry for entry in canonical if entry.code.upper() not in existing_codes]
        result = SeedResult(inserted=0, already_existed=len(canonical) - len(missing))

        for entry in missing:
            try:
                self.pricing.create_entry(entry)
                result.inserted += 1
            except BillingError as e:
                result.failed += 1
                logger.warning("Could not add default %s %s: %s", label, entry.code, e)

        if result.inserted == 0 and result.failed == 0:
            self.notifier.dialog("Already Exists", f"All {len(canonical)} default {label} already exist")
            return result

        description = f"Added {result.inserted} default {label}"
        if result.already_existed:
            description += f" ({result.already_existed} already existed)"
        if result.failed:
            description += f", {result.failed} failed"
        self.notifier.toast("Defaults Added", description, destructive=result.inserted == 0)

        if result.inserted:
            self._refresh()
        return result

    def delete_entry(self, catalog: Catalog, entry_id: int) -> bool:
        try:
            self.pricing.delete_entry(catalog, entry_id)
        except BillingError as e:
            self.notifier.toast(
                "Delete Failed", friendly_delete_message(e, "Could not delete the entry"), destructive=True
            )
            return False

        self.notifier.toast("Deleted", f"The entry has been removed from {CATALOG_LABELS[catalog]}")
        self._refresh()
        return True
