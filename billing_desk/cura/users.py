from billing_desk.cura.base import CuraApi
from billing_desk.cura.entities import User


class CuraUser(CuraApi):

    def get_all_users(self) -> list[User]:
        raw_users = self.get("/api/users")

        users = [
            User(
                id=raw_user["id"],
                first_name=raw_user.get("firstName") or "",
                last_name=raw_user.get("lastName") or "",
                email=raw_user.get("email"),
                role=raw_user.get("role") or "",
            )
            for raw_user in raw_users
        ]

        return users

    def get_role_names(self) -> list[str]:
        raw_roles = self.get("/api/roles")
        return [raw_role.get("displayName") or raw_role["name"] for raw_role in raw_roles]
