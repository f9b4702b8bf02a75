import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Resource(str, Enum):
    INVOICES = "invoices"
    DOCTOR_INVOICES = "doctor-invoices"
    PAYMENTS = "payments"
    INSURANCE = "insurance"
    REVENUE_REPORT = "revenue-report"
    DOCTORS_FEES = "doctors-fees"
    LAB_TESTS = "lab-tests"
    IMAGING = "imaging"
    PATIENTS = "patients"
    USERS = "users"
    ROLES = "roles"
    CLINIC_HEADERS = "clinic-headers"
    CLINIC_FOOTERS = "clinic-footers"


RESOURCE_TAGS: dict[Resource, tuple[str, ...]] = {
    Resource.INVOICES: ("billing",),
    Resource.DOCTOR_INVOICES: ("billing",),
    Resource.PAYMENTS: ("billing",),
    Resource.INSURANCE: ("billing",),
    Resource.REVENUE_REPORT: ("billing", "reports"),
    Resource.DOCTORS_FEES: ("pricing",),
    Resource.LAB_TESTS: ("pricing",),
    Resource.IMAGING: ("pricing",),
    Resource.PATIENTS: ("reference",),
    Resource.USERS: ("reference",),
    Resource.ROLES: ("reference",),
    Resource.CLINIC_HEADERS: ("reference", "branding"),
    Resource.CLINIC_FOOTERS: ("reference", "branding"),
}


@dataclass(frozen=True)
class QueryKey:
    resource: Resource
    scope: tuple[tuple[str, Any], ...] = field(default=())

    @classmethod
    def of(cls, resource: Resource, **scope) -> "QueryKey":
        return cls(resource, tuple(sorted((k, v) for k, v in scope.items() if v is not None)))

    @property
    def tags(self) -> frozenset[str]:
        return frozenset((self.resource.value, *RESOURCE_TAGS[self.resource]))


class QueryCache:
    """Fetched collections keyed by resource and scope, invalidated by tag."""

    def __init__(self):
        self._entries: dict[QueryKey, Any] = {}
        self._loaders: dict[QueryKey, Callable[[], Any]] = {}

    def fetch(self, key: QueryKey, loader: Callable[[], Any]) -> Any:
        self._loaders[key] = loader
        if key not in self._entries:
            self._entries[key] = loader()
        return self._entries[key]

    def peek(self, key: QueryKey) -> Any:
        return self._entries.get(key)

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def invalidate(self, *tags: str) -> list[QueryKey]:
        wanted = set(tags)
        dropped = [key for key in self._entries if key.tags & wanted]
        for key in dropped:
            del self._entries[key]

        logger.debug("Invalidated %s cached queries for tags %s", len(dropped), sorted(wanted))
        return dropped

    def refetch(self, *tags: str) -> list[QueryKey]:
        dropped = self.invalidate(*tags)
        for key in dropped:
            self._entries[key] = self._loaders[key]()
        return dropped

    def clear(self):
        self._entries.clear()
        self._loaders.clear()
