# Shared fakes: a fragmenting backend behind httpx.MockTransport and a sink
# that records what the relay emits.

import asyncio
import json
from types import MappingProxyType

import httpx
import pytest

from ollama_gateway.generate.types import GenerationRequest
from ollama_gateway.relay import RelayController, build_stream_client
from ollama_gateway.settings import RelayConfig

HELLO = [
    b'{"response":"He","done":false}\n',
    b'{"response":"llo","done":false}\n',
    b'{"response":"","done":true}\n',
]


class FragmentStream(httpx.AsyncByteStream):
    """Backend body delivered as the given fragments, then an optional failure or hang."""

    def __init__(self, fragments=(), error=None, hang=False):
        self.fragments = list(fragments)
        self.error = error
        self.hang = hang
        self.sent = 0
        self.closed = False

    async def __aiter__(self):
        for fragment in self.fragments:
            await asyncio.sleep(0)
            self.sent += 1
            yield fragment
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class FakeBackend:
    def __init__(self, fragments=(), status_code=200, error=None, hang=False, refuse=False, headers=None):
        self.stream = FragmentStream(fragments, error=error, hang=hang)
        self.status_code = status_code
        self.refuse = refuse
        self.headers = headers or {}
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.refuse:
            raise httpx.ConnectError("Connection refused", request=request)
        return httpx.Response(self.status_code, headers=self.headers, stream=self.stream)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSink:
    def __init__(self, delay: float = 0):
        self.events = []
        self.delay = delay

    async def emit(self, event):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.events.append(event)


@pytest.fixture
def relay_config():
    return RelayConfig(
        base_url="http://ollama.test",
        default_model="test-model",
        default_options=MappingProxyType({"temperature": 0.7, "maxTokens": 1024}),
        connect_timeout=1.0,
    )


@pytest.fixture
def gen_request(relay_config):
    return GenerationRequest.create(
        "hi",
        defaults=relay_config.default_options,
        default_model=relay_config.default_model,
    )


@pytest.fixture
def run_relay(relay_config):
    """Run one relay session against ``backend`` on a fresh event loop."""

    def _run(backend, request, sink, disconnect_after=None, config=None):
        async def scenario():
            client = build_stream_client(config or relay_config, transport=backend.transport)
            controller = RelayController(config or relay_config, client)
            disconnected = asyncio.Event()
            if disconnect_after is not None:
                asyncio.get_running_loop().call_later(disconnect_after, disconnected.set)
            try:
                return await asyncio.wait_for(controller.run(request, sink, disconnected), timeout=5)
            finally:
                await client.aclose()

        return asyncio.run(scenario())

    return _run
