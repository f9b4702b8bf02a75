from datetime import date

from billing_desk.cura.base import CuraApi


class CuraReport(CuraApi):

    def get_revenue_breakdown(
        self,
        date_from: date,
        date_to: date,
        insurance_type: str | None = None,
        role: str | None = None,
        user_id: int | None = None,
    ) -> list[dict]:
        """Server-computed breakdown, rows shaped like the client-side one."""
        params = {"from": date_from.isoformat(), "to": date_to.isoformat()}
        if insurance_type and insurance_type != "all":
            params["insuranceType"] = insurance_type
        if role and role != "all":
            params["role"] = role
        if user_id is not None:
            params["userId"] = user_id

        response = self.get("/api/reports/revenue-breakdown", params=params)
        return response["data"] if isinstance(response, dict) else response
