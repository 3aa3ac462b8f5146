from __future__ import annotations

import asyncio
import json
import shlex
import sys
from pathlib import Path

import httpx
import pytest

from agent_relay.agents.schemas import SearchInput, SearchOutput
from agent_relay.orchestrator import (
    BackendConfig,
    BackendDefinition,
    Dispatcher,
    HealthStatus,
    Result,
    SpecAgent,
    Task,
    TaskFailure,
    TaskSpec,
)

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


class EchoAgent:
    id = "echo"
    type = "echo"
    version = "2.0.0"

    def __init__(self, delay_s: float = 0.0, error: Exception | None = None) -> None:
        self.delay_s = delay_s
        self.error = error
        self.calls: list[Task] = []

    def capabilities(self) -> list[str]:
        return ["echo"]

    async def execute(self, task: Task) -> Result:
        self.calls.append(task)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return Result.ok({"echo": task.payload})

    async def health(self) -> HealthStatus:
        return HealthStatus(status="healthy")


def make_task(task_type: str = "echo", **payload: object) -> Task:
    return Task(id="task-1", type=task_type, payload=dict(payload), context={"sessionId": "s1"})


def http_dispatcher(handler, *, timeout_s: float = 30.0) -> Dispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return Dispatcher(timeout_s=timeout_s, http_client=client)


@pytest.mark.asyncio
async def test_unregistered_backend_returns_failure() -> None:
    dispatcher = Dispatcher()

    result = await dispatcher.execute("missing", make_task())

    assert result.success is False
    assert result.error == "backend not registered: missing"
    await dispatcher.aclose()


@pytest.mark.asyncio
async def test_in_process_backend_receives_task_and_metadata_is_filled() -> None:
    dispatcher = Dispatcher()
    agent = EchoAgent()
    dispatcher.register(
        BackendDefinition(id="echo", type="echo", version="2.0.0", runtime="in-process"), agent
    )

    result = await dispatcher.execute("echo", make_task(text="hi"))

    assert result.success is True
    assert result.data == {"echo": {"text": "hi"}}
    assert result.metadata.backend_id == "echo"
    assert result.metadata.version == "2.0.0"
    assert result.metadata.latency is not None
    assert agent.calls[0].context.session_id == "s1"
    await dispatcher.aclose()


def test_register_validates_runtime_requirements() -> None:
    dispatcher = Dispatcher()

    with pytest.raises(ValueError, match="implementation"):
        dispatcher.register(BackendDefinition(id="a", type="x", runtime="in-process"))
    with pytest.raises(ValueError, match="config.url"):
        dispatcher.register(BackendDefinition(id="b", type="x", runtime="http"))
    with pytest.raises(ValueError, match="config.ports"):
        dispatcher.register(BackendDefinition(id="c", type="x", runtime="container"))
    with pytest.raises(ValueError, match="config.script"):
        dispatcher.register(BackendDefinition(id="d", type="x", runtime="process"))

    assert dispatcher.list() == []


def test_container_endpoint_defaults_to_first_port() -> None:
    dispatcher = Dispatcher()

    handle = dispatcher.register(
        BackendDefinition(
            id="box", type="retrieval", runtime="container", config=BackendConfig(ports=[9100])
        )
    )

    assert handle.endpoint == "http://127.0.0.1:9100"


def test_registering_same_id_twice_keeps_latest() -> None:
    dispatcher = Dispatcher()
    dispatcher.register(
        BackendDefinition(
            id="r", type="retrieval", version="1", runtime="http", config={"url": "http://a"}
        )
    )
    dispatcher.register(
        BackendDefinition(
            id="r", type="retrieval", version="2", runtime="http", config={"url": "http://b"}
        )
    )

    handles = dispatcher.list()

    assert len(handles) == 1
    assert handles[0].definition.version == "2"
    assert handles[0].endpoint == "http://b"
    assert [handle.id for handle in dispatcher.list_by_type("retrieval")] == ["r"]


@pytest.mark.asyncio
async def test_http_backend_posts_wire_task_and_parses_result() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"success": True, "data": {"n": 1}, "metadata": {"version": "9"}}
        )

    dispatcher = http_dispatcher(handler)
    dispatcher.register(
        BackendDefinition(id="remote", type="echo", runtime="http", config={"url": "http://svc/"})
    )

    result = await dispatcher.execute("remote", make_task(text="hi"))

    assert result.success is True
    assert result.data == {"n": 1}
    assert result.metadata.version == "9"
    assert result.metadata.backend_id == "remote"
    assert str(seen[0].url) == "http://svc/execute"
    body = json.loads(seen[0].content)
    assert body["context"] == {"sessionId": "s1"}
    assert body["payload"] == {"text": "hi"}


@pytest.mark.asyncio
async def test_http_non_2xx_becomes_failure() -> None:
    dispatcher = http_dispatcher(lambda request: httpx.Response(503))
    dispatcher.register(
        BackendDefinition(id="remote", type="echo", runtime="http", config={"url": "http://svc"})
    )

    result = await dispatcher.execute("remote", make_task())

    assert result.success is False
    assert result.error == "HTTP 503: Service Unavailable"


@pytest.mark.asyncio
async def test_http_malformed_body_becomes_failure() -> None:
    dispatcher = http_dispatcher(lambda request: httpx.Response(200, text="<html>oops</html>"))
    dispatcher.register(
        BackendDefinition(id="remote", type="echo", runtime="http", config={"url": "http://svc"})
    )

    result = await dispatcher.execute("remote", make_task())

    assert result.success is False
    assert "malformed response" in result.error


@pytest.mark.asyncio
async def test_http_network_error_becomes_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = http_dispatcher(handler)
    dispatcher.register(
        BackendDefinition(id="remote", type="echo", runtime="http", config={"url": "http://svc"})
    )

    result = await dispatcher.execute("remote", make_task())

    assert result.success is False
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_hanging_http_backend_times_out() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json={"success": True})

    dispatcher = http_dispatcher(handler, timeout_s=0.05)
    dispatcher.register(
        BackendDefinition(id="slow", type="echo", runtime="http", config={"url": "http://svc"})
    )

    started = asyncio.get_running_loop().time()
    result = await dispatcher.execute("slow", make_task())
    elapsed = asyncio.get_running_loop().time() - started

    assert result.success is False
    assert result.error == "backend slow timed out after 0.05s"
    assert elapsed < 1.0


@pytest.mark.asyncio
async def test_backend_exception_is_converted_to_failure() -> None:
    dispatcher = Dispatcher()
    dispatcher.register(
        BackendDefinition(id="echo", type="echo", runtime="in-process"),
        EchoAgent(error=RuntimeError("boom")),
    )

    result = await dispatcher.execute("echo", make_task())

    assert result.success is False
    assert result.error == "backend echo failed: boom"
    await dispatcher.aclose()


@pytest.mark.asyncio
async def test_process_backend_round_trip(tmp_path: Path) -> None:
    script = tmp_path / "backend.py"
    script.write_text(
        "import json, sys\n"
        "task = json.loads(sys.stdin.read())\n"
        "print('booting')\n"
        "print(json.dumps({'success': True, 'data': {'type': task['type'], "
        "'session': task['context']['sessionId']}}))\n",
        encoding="utf-8",
    )
    dispatcher = Dispatcher()
    dispatcher.register(
        BackendDefinition(
            id="proc",
            type="echo",
            runtime="process",
            config={"script": f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"},
        )
    )

    result = await dispatcher.execute("proc", make_task())

    assert result.success is True
    assert result.data == {"type": "echo", "session": "s1"}
    await dispatcher.aclose()


@pytest.mark.asyncio
async def test_process_backend_non_zero_exit_is_failure(tmp_path: Path) -> None:
    script = tmp_path / "crash.py"
    script.write_text("import sys\nsys.stderr.write('bad input')\nsys.exit(3)\n", encoding="utf-8")
    dispatcher = Dispatcher()
    dispatcher.register(
        BackendDefinition(
            id="proc",
            type="echo",
            runtime="process",
            config={"script": f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"},
        )
    )

    result = await dispatcher.execute("proc", make_task())

    assert result.success is False
    assert "exited with code 3" in result.error
    assert "bad input" in result.error
    await dispatcher.aclose()


@pytest.mark.asyncio
async def test_bundled_worker_serves_as_process_backend() -> None:
    dispatcher = Dispatcher(timeout_s=30)
    dispatcher.register(
        BackendDefinition(
            id="llm-proc",
            type="llm",
            runtime="process",
            config={
                "script": f"{shlex.quote(sys.executable)} -m agent_relay.worker --agent llm",
                "env": {
                    "PYTHONPATH": str(SRC_DIR),
                    "AGENT_RELAY_SIMULATED_LATENCY_MIN_MS": "0",
                    "AGENT_RELAY_SIMULATED_LATENCY_MAX_MS": "0",
                    "AGENT_RELAY_LLM_PROVIDER": "mock",
                },
            },
        )
    )
    task = Task(
        id="t-chat",
        type="chat",
        payload={"system": "be brief", "user": "Context:\n[1] (a.md) x\n\nQuestion: what is up"},
    )

    result = await dispatcher.execute("llm-proc", task)

    assert result.success is True, result.error
    assert result.data["text"] == "Here is what the documentation says about: what is up [1]"
    assert result.metadata.backend_id == "llm-agent"
    await dispatcher.aclose()


@pytest.mark.asyncio
async def test_check_health_for_in_process_http_and_unknown() -> None:
    dispatcher = http_dispatcher(
        lambda request: httpx.Response(200 if request.url.path == "/ready" else 404)
    )
    dispatcher.register(
        BackendDefinition(id="echo", type="echo", runtime="in-process"), EchoAgent()
    )
    dispatcher.register(
        BackendDefinition(
            id="remote",
            type="echo",
            runtime="http",
            config={"url": "http://svc", "healthEndpoint": "/ready"},
        )
    )

    assert (await dispatcher.check_health("echo")).status == "healthy"
    assert (await dispatcher.check_health("remote")).status == "healthy"
    assert (await dispatcher.check_health("missing")).status == "unknown"


@pytest.mark.asyncio
async def test_spec_agent_validates_payload_before_handler() -> None:
    calls: list[SearchInput] = []

    async def search(payload: SearchInput) -> SearchOutput:
        calls.append(payload)
        return SearchOutput(results=[])

    async def broken(payload: SearchInput) -> SearchOutput:
        raise TaskFailure("index unavailable")

    agent = SpecAgent(
        agent_id="retrieval",
        agent_type="retrieval",
        specs={
            "search": TaskSpec(SearchInput, SearchOutput, search),
            "broken": TaskSpec(SearchInput, SearchOutput, broken),
        },
    )

    invalid = await agent.execute(Task(id="1", type="search", payload={"maxResults": 3}))
    unknown = await agent.execute(Task(id="2", type="delete", payload={}))
    failed = await agent.execute(Task(id="3", type="broken", payload={"query": "x"}))
    valid = await agent.execute(Task(id="4", type="search", payload={"query": "x"}))

    assert invalid.success is False
    assert invalid.error.startswith("Invalid payload for search: query")
    assert calls[0].query == "x"
    assert len(calls) == 1
    assert unknown.error == "Unknown task type: delete"
    assert failed.error == "index unavailable"
    assert valid.data == {"results": [], "fallback": False}
    assert valid.metadata.backend_id == "retrieval"


@pytest.mark.asyncio
async def test_hanging_in_process_backend_times_out() -> None:
    dispatcher = Dispatcher(timeout_s=0.05)
    dispatcher.register(
        BackendDefinition(id="echo", type="echo", runtime="in-process"), EchoAgent(delay_s=5)
    )

    result = await dispatcher.execute("echo", make_task())

    assert result.success is False
    assert result.error == "backend echo timed out after 0.05s"
    await dispatcher.aclose()
