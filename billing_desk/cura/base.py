import logging
from dataclasses import dataclass

from httpx import Client, Response, TransportError

from billing_desk.errors import ApiError

logger = logging.getLogger(__name__)


@dataclass
class CuraApi:
    http_client: Client
    auth_token: str
    subdomain: str

    @property
    def headers(self):
        headers = {"X-Tenant-Subdomain": self.subdomain, "Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def request(self, method: str, url: str, json=None, params=None) -> Response:
        try:
            response = self.http_client.request(method, url, headers=self.headers, json=json, params=params)
        except TransportError as e:
            raise ApiError(f"Could not reach the server: {e}") from e

        if response.is_error:
            error = ApiError.from_response(response)
            logger.warning("%s %s failed with %s: %s", method, url, response.status_code, error.message)
            raise error

        return response

    def get(self, url: str, params=None):
        return self.request("GET", url, params=params).json()

    def post(self, url: str, json=None):
        return self._json_or_none(self.request("POST", url, json=json))

    def patch(self, url: str, json=None):
        return self._json_or_none(self.request("PATCH", url, json=json))

    def delete(self, url: str):
        return self._json_or_none(self.request("DELETE", url))

    @staticmethod
    def _json_or_none(response: Response):
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
