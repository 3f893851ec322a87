import asyncio
import importlib
from typing import List

from fastapi import FastAPI
from fastapi.testclient import TestClient

from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compiler_registry import CompilerRegistry
from compiler_dispatch.errors import RegistryRebuildError
from compiler_dispatch.models import CompilerInfo
from tests.fakes.fake_compilers import FakeFactory, make_config


def build_registry(*configs) -> CompilerRegistry:
    registry = CompilerRegistry(
        environment=CompilationEnvironment(),
        factories={"default": FakeFactory(), "remote": FakeFactory()},
    )
    asyncio.run(registry.rebuild(list(configs)))
    return registry


def build_compilers_client(registry: CompilerRegistry, reload_callback=None) -> TestClient:
    module = importlib.import_module("compiler_dispatch.routers.compilers")

    async def no_reload() -> List[CompilerInfo]:
        return registry.list_compilers()

    app = FastAPI()
    app.include_router(module.setup_router(registry, reload_callback or no_reload))
    return TestClient(app)


def test_list_compilers_uses_wire_names():
    registry = build_registry(
        make_config("gcc", name="GCC 13", default_filters={"intel": True}),
        make_config("arm-gcc", compiler_type="remote", remote="http://peer:10240"),
    )
    client = build_compilers_client(registry)

    response = client.get("/api/compilers")

    assert response.status_code == 200
    assert response.json() == [
        {
            "id": "gcc",
            "name": "GCC 13",
            "lang": "c++",
            "compilerType": "default",
            "defaultFilters": {"intel": True},
        },
        {
            "id": "arm-gcc",
            "name": "arm-gcc",
            "lang": "c++",
            "compilerType": "remote",
            "remote": "http://peer:10240",
            "defaultFilters": {},
        },
    ]


def test_list_compilers_filters_by_language():
    registry = build_registry(make_config("gcc", lang="c++"), make_config("rustc", lang="rust"))
    client = build_compilers_client(registry)

    response = client.get("/api/compilers", params={"lang": "rust"})

    assert [entry["id"] for entry in response.json()] == ["rustc"]
    assert client.get("/api/compilers", params={"lang": "cobol"}).json() == []


def test_reload_reports_new_compilers():
    registry = build_registry(make_config("old"))

    async def reload() -> List[CompilerInfo]:
        return await registry.rebuild([make_config("new-a"), make_config("new-b")])

    client = build_compilers_client(registry, reload)

    response = client.post("/api/compilers/reload")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert [entry["id"] for entry in body["compilers"]] == ["new-a", "new-b"]
    assert registry.find("c++", "old") is None


def test_failed_reload_is_server_error_and_keeps_compilers():
    registry = build_registry(make_config("gcc"))

    async def reload() -> List[CompilerInfo]:
        raise RegistryRebuildError("compilers.json is not valid JSON")

    client = build_compilers_client(registry, reload)

    response = client.post("/api/compilers/reload")

    assert response.status_code == 500
    assert "not valid JSON" in response.json()["error"]
    assert registry.find("c++", "gcc") is not None


def test_health_reports_compiler_count_and_busy_state():
    registry = build_registry(make_config("gcc"), make_config("clang"))
    client = build_compilers_client(registry)

    assert client.get("/api/health").json() == {"status": "ok", "compilers": 2, "busy": False}

    registry.environment._pending = 1
    assert client.get("/api/health").json()["busy"] is True
