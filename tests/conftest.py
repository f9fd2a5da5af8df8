"""
Shared test fixtures

FakeServer serves queued JSON replies per (method, host, path) through an
httpx.MockTransport and records every request it receives.
"""

import asyncio
from collections import defaultdict
from urllib.parse import parse_qsl

import httpx
import pytest

from control_toggler.api.auth import AuthorizationV2Builder
from control_toggler.api.client import CommandApi
from control_toggler.toggler.toggler import ControlToggler

TEST_CONTROL_ID = "test-control"
TEST_TOKEN_ID = "test-token"
TEST_TOKEN_SECRET = "secret"
TEST_NODE_ID = 123

BASE_URL = "http://localhost"

ADD_PATH = "/solaruser/api/v1/sec/instr/add/SetControlParameter"
UPDATE_STATE_PATH = "/solaruser/api/v1/sec/instr/updateState"
VIEW_PATH = "/solaruser/api/v1/sec/instr/view"
VIEW_PENDING_PATH = "/solaruser/api/v1/sec/instr/viewPending"
MOST_RECENT_PATH = "/solarquery/api/v1/sec/datum/mostRecent"

AUTH_POST_REGEX = (
    r"^SNWS2 Credential=test-token,SignedHeaders=content-type;host;x-sn-date,Signature=[0-9a-f]{64}$"
)
AUTH_GET_REGEX = r"^SNWS2 Credential=test-token,SignedHeaders=host;x-sn-date,Signature=[0-9a-f]{64}$"


class FakeServer:
    """Queued-reply HTTP fake"""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.requests: list[httpx.Request] = []
        self.max_in_flight = 0
        self._in_flight = 0
        self._replies: dict[tuple[str, str, str], list[httpx.Response]] = defaultdict(list)

    def reply(
        self,
        method: str,
        path: str,
        json=None,
        status: int = 200,
        host: str = "localhost",
    ) -> "FakeServer":
        if json is None:
            response = httpx.Response(status)
        else:
            response = httpx.Response(status, json=json)
        self._replies[(method, host, path)].append(response)
        return self

    def ok(self, method: str, path: str, data=None, host: str = "localhost") -> "FakeServer":
        body = {"success": True}
        if data is not None:
            body["data"] = data
        return self.reply(method, path, json=body, host=host)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            key = (request.method, request.url.host, request.url.path)
            queue = self._replies.get(key)
            if not queue:
                raise AssertionError(f"Unexpected request {request.method} {request.url}")
            return queue.pop(0)
        finally:
            self._in_flight -= 1

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    def pending_replies(self) -> int:
        return sum(len(q) for q in self._replies.values())


def form(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode("utf-8")))


def command_data(
    id: int = 12345,
    value: str = "1",
    state: str = "Queued",
    created: str = "2017-07-26 05:57:49.608Z",
    control_id: str = TEST_CONTROL_ID,
) -> dict:
    return {
        "id": id,
        "created": created,
        "topic": "SetControlParameter",
        "state": state,
        "parameters": [{"name": control_id, "value": value}],
    }


def reading_data(val, created: str = "2017-07-26 05:57:49.608Z", source_id: str = TEST_CONTROL_ID) -> dict:
    return {
        "totalResults": 1,
        "startingOffset": 0,
        "returnedResultCount": 1,
        "results": [
            {"created": created, "nodeId": TEST_NODE_ID, "sourceId": source_id, "val": val},
        ],
    }


def make_toggler(server: FakeServer, auth: AuthorizationV2Builder | None = None) -> ControlToggler:
    if auth is None:
        auth = AuthorizationV2Builder(TEST_TOKEN_ID).save_signing_key(TEST_TOKEN_SECRET)
    api = CommandApi(BASE_URL, transport=server.transport)
    return ControlToggler(api, auth, TEST_NODE_ID, TEST_CONTROL_ID)


class CallbackRecorder:
    """Callback that records (value, pending, error) for each invocation"""

    def __init__(self, raise_error: Exception | None = None):
        self.calls: list[tuple] = []
        self.raise_error = raise_error

    def __call__(self, toggler: ControlToggler, error: Exception | None) -> None:
        self.calls.append((toggler.value(), toggler.has_pending_state_change, error))
        if self.raise_error is not None:
            raise self.raise_error

    @property
    def values(self) -> list:
        return [c[0] for c in self.calls]

    @property
    def errors(self) -> list:
        return [c[2] for c in self.calls]


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def auth() -> AuthorizationV2Builder:
    return AuthorizationV2Builder(TEST_TOKEN_ID).save_signing_key(TEST_TOKEN_SECRET)

