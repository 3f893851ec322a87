"""Tests for application wiring: settings, startup loading and reloads."""

import json

import pytest
from fastapi.testclient import TestClient

from compiler_dispatch.app_factory import AppContext, create_app
from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compiler_registry import CompilerRegistry
from compiler_dispatch.errors import RegistryRebuildError
from compiler_dispatch.temp_cleanup import get_cleanup_service
from tests.fakes.fake_compilers import FakeFactory


def write_compilers(path, *ids):
    path.write_text(json.dumps({"compilers": [{"id": i, "lang": "c++", "exe": "fake-cc"} for i in ids]}))
    return str(path)


def make_context(compilers_file, **kwargs) -> AppContext:
    environment = CompilationEnvironment()
    registry = CompilerRegistry(environment=environment, factories={"default": FakeFactory()})
    return AppContext(
        compilers_file=compilers_file,
        environment=environment,
        registry=registry,
        **kwargs,
    )


def test_settings_come_from_environment(monkeypatch):
    monkeypatch.setenv("DISPATCH_COMPILERS_FILE", "/etc/dispatch/compilers.json")
    monkeypatch.setenv("DISPATCH_TEXT_BANNER", "Served by dispatch")
    monkeypatch.setenv("DISPATCH_COMPILE_TIMEOUT", "3")
    monkeypatch.setenv("DISPATCH_MAX_CONCURRENT_COMPILES", "4")
    monkeypatch.setenv("DISPATCH_TEMP_DIR_CLEANUP_SECS", "30")

    ctx = AppContext()

    assert ctx.compilers_file == "/etc/dispatch/compilers.json"
    assert ctx.text_banner == "Served by dispatch"
    assert ctx.temp_dir_cleanup_secs == 30.0
    assert ctx.environment.compile_timeout == 3.0
    assert ctx.environment.max_concurrent == 4
    assert ctx.registry.environment is ctx.environment


def test_settings_defaults(monkeypatch):
    for name in ("DISPATCH_COMPILERS_FILE", "DISPATCH_TEXT_BANNER", "DISPATCH_TEMP_DIR_CLEANUP_SECS"):
        monkeypatch.delenv(name, raising=False)

    ctx = AppContext()

    assert ctx.compilers_file is None
    assert ctx.text_banner is None
    assert ctx.temp_dir_cleanup_secs == 600.0
    assert ctx.api_port == 10240


@pytest.mark.asyncio
async def test_reload_compilers_reads_configuration_file(tmp_path):
    ctx = make_context(write_compilers(tmp_path / "compilers.json", "gcc", "clang"))

    infos = await ctx.reload_compilers()

    assert [info.id for info in infos] == ["gcc", "clang"]
    assert ctx.registry.find("c++", "clang") is not None


@pytest.mark.asyncio
async def test_bad_configuration_keeps_previous_compilers(tmp_path):
    path = tmp_path / "compilers.json"
    ctx = make_context(write_compilers(path, "gcc"))
    await ctx.reload_compilers()

    path.write_text("{not json")
    with pytest.raises(RegistryRebuildError):
        await ctx.reload_compilers()

    assert ctx.registry.find("c++", "gcc") is not None


def test_app_loads_compilers_on_startup_and_serves_them(tmp_path):
    ctx = make_context(write_compilers(tmp_path / "compilers.json", "gcc"))
    app = create_app(context=ctx, text_banner="Compiled remotely")

    with TestClient(app) as client:
        assert get_cleanup_service().started
        assert client.get("/api/health").json()["compilers"] == 1

        response = client.post(
            "/api/compiler/gcc/compile",
            content="int main() {}",
            headers={"Content-Type": "text/plain", "Accept": "text/plain"},
        )

    assert response.status_code == 200
    assert response.text == "# Compiled remotely\nmain:\n  ret\n"
    assert not get_cleanup_service().started


def test_app_starts_with_no_compilers_when_configuration_is_broken(tmp_path):
    path = tmp_path / "compilers.json"
    path.write_text("[{\"id\": \"missing-fields\"}]")
    ctx = make_context(str(path))

    with TestClient(create_app(context=ctx)) as client:
        assert client.get("/api/compilers").json() == []

        write_compilers(path, "gcc")
        reloaded = client.post("/api/compilers/reload")

        assert reloaded.json()["count"] == 1
        assert client.post("/api/compiler/gcc/compile", json={"source": "x"}).status_code == 200


def test_production_mode_disables_docs(tmp_path):
    ctx = make_context(None)

    assert create_app(context=ctx, production_mode=True).docs_url is None
    assert create_app(context=make_context(None), production_mode=False).docs_url == "/docs"
