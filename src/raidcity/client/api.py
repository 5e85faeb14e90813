"""HTTP wrapper for the raid endpoints, used by the client session."""

from __future__ import annotations

from typing import Any

import httpx

from raidcity.raids.schemas import RaidExecuteResponse, RaidPreviewResponse


class RaidApiError(Exception):
    """Non-2xx response from the raid API. ``message`` is the server's ``detail``."""

    def __init__(self, status_code: int, message: str, code: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(f"{status_code}: {message}")


class RaidApiClient:
    """Posts raid requests with the caller's bearer token.

    Requests are not cancellable once issued; callers guard against
    duplicates with their own loading flag.
    """

    def __init__(self, client: httpx.AsyncClient, token: str | None = None, prefix: str = "/api/v1/raid") -> None:
        self.client = client
        self.token = token
        self.prefix = prefix

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _post(self, path: str, body: dict[str, Any], fallback: str) -> dict[str, Any]:
        response = await self.client.post(f"{self.prefix}{path}", json=body, headers=self._headers())
        if response.status_code >= 400:
            try:
                data = response.json()
            except ValueError:
                data = {}
            raise RaidApiError(response.status_code, data.get("detail") or fallback, data.get("code"))
        return response.json()

    async def preview(self, target_login: str) -> RaidPreviewResponse:
        data = await self._post("/preview", {"target_login": target_login}, "Failed to load raid preview")
        return RaidPreviewResponse.model_validate(data)

    async def execute(
        self,
        target_login: str,
        boost_purchase_id: int | None = None,
        vehicle_id: str | None = None,
    ) -> RaidExecuteResponse:
        body: dict[str, Any] = {"target_login": target_login}
        if boost_purchase_id is not None:
            body["boost_purchase_id"] = boost_purchase_id
        if vehicle_id is not None:
            body["vehicle_id"] = vehicle_id
        data = await self._post("/execute", body, "Raid failed")
        return RaidExecuteResponse.model_validate(data)
