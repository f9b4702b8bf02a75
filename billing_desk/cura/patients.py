from billing_desk.cura.base import CuraApi
from billing_desk.cura.entities import Patient


class CuraPatient(CuraApi):

    def get_all_patients(self) -> list[Patient]:
        raw_patients = self.get("/api/patients")

        data = [
            Patient(
                id=raw_patient["id"],
                patient_id=str(raw_patient.get("patientId") or raw_patient["id"]),
                first_name=raw_patient.get("firstName") or "",
                last_name=raw_patient.get("lastName") or "",
                nhs_number=raw_patient.get("nhsNumber"),
                email=raw_patient.get("email"),
                phone=raw_patient.get("phone"),
                address=_format_address(raw_patient.get("address")),
            )
            for raw_patient in raw_patients
        ]

        return data


def _format_address(raw_address) -> str | None:
    if not raw_address:
        return None
    if isinstance(raw_address, str):
        return raw_address

    parts = [raw_address.get(key) for key in ("street", "city", "state", "postcode", "country")]
    return ", ".join(part for part in parts if part) or None
