"""
Command and Reading API Clients

Thin async wrappers over the command-queue (SolarUser) and most-recent
reading (SolarQuery) endpoints. Each call signs the request, sends it
through a reusable httpx client and unwraps the response envelope.
"""

from typing import Any
from urllib.parse import urlencode

import httpx

from control_toggler.common.exceptions import ApplicationError, TransportError
from control_toggler.common.logging_setup import get_service_logger
from control_toggler.toggler.state import Command, CommandParameter, CommandState, ControlReading

from .auth import AuthorizationV2Builder

logger = get_service_logger("api")

FORM_URLENCODED_UTF8 = "application/x-www-form-urlencoded; charset=UTF-8"
APPLICATION_JSON = "application/json"


class ApiClient:
    """Shared request/envelope handling for the API clients"""

    path_prefix = ""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        # Reusable HTTP client
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        auth: AuthorizationV2Builder,
        method: str,
        path: str,
        params: list[tuple[str, Any]] | None = None,
    ) -> Any:
        """
        Send a signed request and return the envelope `data`.

        GET parameters go on the query string; other methods post them
        form-encoded.

        Raises:
            InvalidCredentialsError: auth has no usable signing key
            TransportError: network failure or non-envelope response
            ApplicationError: envelope reported success=false
        """
        params = [(k, "" if v is None else str(v)) for k, v in (params or [])]
        url = httpx.URL(f"{self.base_url}{self.path_prefix}{path}")
        is_get = method.upper() == "GET"
        content_type = None if is_get else FORM_URLENCODED_UTF8

        headers = {"Accept": APPLICATION_JSON}
        headers.update(auth.build_headers(method, url, params, content_type))

        client = await self._get_client()
        try:
            if is_get:
                response = await client.request(
                    method, url, params=params or None, headers=headers
                )
            else:
                headers["Content-Type"] = content_type
                response = await client.request(
                    method, url, content=urlencode(params), headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(str(e) or type(e).__name__) from e

        return self._unwrap(response)

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "success" in body:
            if body.get("success") is not True:
                raise ApplicationError.from_envelope(response.status_code, body)
            return body.get("data")

        raise TransportError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            status=response.status_code,
        )


class CommandApi(ApiClient):
    """Command queue endpoints"""

    path_prefix = "/solaruser/api/v1/sec"

    async def enqueue_command(
        self,
        auth: AuthorizationV2Builder,
        device_id: int,
        topic: str,
        parameters: list[CommandParameter],
    ) -> Command | None:
        """Queue a command; None if the response carried no command"""
        params: list[tuple[str, Any]] = [("nodeId", device_id)]
        for i, p in enumerate(parameters):
            params.append((f"parameters[{i}].name", p.name))
            params.append((f"parameters[{i}].value", p.value))
        data = await self.request(auth, "POST", f"/instr/add/{topic}", params)
        return Command.from_dict(data) if isinstance(data, dict) else None

    async def cancel_command(self, auth: AuthorizationV2Builder, command_id: Any) -> None:
        """Mark a queued command Declined"""
        await self.request(
            auth,
            "POST",
            "/instr/updateState",
            [("id", command_id), ("state", CommandState.DECLINED.value)],
        )

    async def get_command(self, auth: AuthorizationV2Builder, command_id: Any) -> Command | None:
        data = await self.request(auth, "GET", "/instr/view", [("id", command_id)])
        return Command.from_dict(data) if isinstance(data, dict) else None

    async def get_pending_commands(
        self, auth: AuthorizationV2Builder, device_id: int
    ) -> list[Command]:
        data = await self.request(auth, "GET", "/instr/viewPending", [("nodeId", device_id)])
        if not isinstance(data, list):
            return []
        return [Command.from_dict(d) for d in data if isinstance(d, dict)]


class ReadingApi(ApiClient):
    """Most-recent reading endpoint"""

    path_prefix = "/solarquery/api/v1/sec"

    @classmethod
    def for_command_api(cls, api: CommandApi) -> "ReadingApi":
        """Reading client on the same host and transport as a command client"""
        return cls(api.base_url, timeout=api.timeout, transport=api.transport)

    async def get_most_recent_readings(
        self,
        auth: AuthorizationV2Builder,
        device_id: int,
        control_id: str,
    ) -> list[ControlReading]:
        data = await self.request(
            auth,
            "GET",
            "/datum/mostRecent",
            [("nodeId", device_id), ("sourceId", control_id)],
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []
        return [ControlReading.from_dict(d) for d in results if isinstance(d, dict)]
