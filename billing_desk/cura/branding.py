from billing_desk.cura.base import CuraApi
from billing_desk.cura.entities import ClinicBranding


class CuraBranding(CuraApi):

    def get_clinic_header(self) -> ClinicBranding | None:
        raw_headers = self.get("/api/clinic-headers")

        for raw_header in raw_headers:
            if not raw_header.get("isActive", True):
                continue

            lines = [raw_header.get(key) for key in ("address", "phone", "email", "website")]
            return ClinicBranding(
                clinic_name=raw_header.get("clinicName") or "",
                lines=[line for line in lines if line],
            )

        return None

    def get_clinic_footer(self) -> ClinicBranding | None:
        raw_footers = self.get("/api/clinic-footers")

        for raw_footer in raw_footers:
            if not raw_footer.get("isActive", True):
                continue

            return ClinicBranding(
                clinic_name=raw_footer.get("clinicName") or "",
                lines=[line for line in (raw_footer.get("footerText") or "").splitlines() if line.strip()],
            )

        return None
