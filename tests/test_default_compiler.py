"""Tests for the local command line compiler type, using shell script stand-ins."""

import stat
import sys

import pytest

from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compilers import get_compiler_factory
from compiler_dispatch.compilers.default import DefaultCompiler
from compiler_dispatch.errors import CompilationFailure
from compiler_dispatch.temp_cleanup import TempDirTracker
from tests.fakes.fake_compilers import make_config

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")

FAKE_CC = """#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "fakecc 1.2.3"
    echo "second line"
    exit 0
fi
out=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "-o" ]; then out="$arg"; fi
    prev="$arg"
done
echo "square:" > "$out"
echo "  ret" >> "$out"
echo "args: $*"
for arg in "$@"; do last="$arg"; done
echo "$last:2:5: warning: unused" >&2
exit 0
"""


def write_script(path, body):
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


@pytest.fixture
def environment(tmp_path):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return CompilationEnvironment(compile_timeout=5, temp_dirs=TempDirTracker(base_dir=str(scratch)))


@pytest.fixture
def fake_cc(tmp_path):
    return write_script(tmp_path / "fakecc", FAKE_CC)


@pytest.mark.asyncio
async def test_probe_records_first_version_line(environment, fake_cc):
    factory = get_compiler_factory("default")

    compiler = await factory(make_config("fake", exe=fake_cc), environment, "c++")

    assert isinstance(compiler, DefaultCompiler)
    assert compiler.version == "fakecc 1.2.3"
    assert compiler.get_info().version == "fakecc 1.2.3"


@pytest.mark.asyncio
async def test_probe_of_missing_executable_drops_compiler(environment, tmp_path):
    compiler = DefaultCompiler(make_config("gone", exe=str(tmp_path / "missing")), environment)

    assert await compiler.initialise() is None


@pytest.mark.asyncio
async def test_probe_with_failing_exit_code_drops_compiler(environment, tmp_path):
    exe = write_script(tmp_path / "broken", "#!/bin/sh\necho nope >&2\nexit 3\n")

    assert await DefaultCompiler(make_config("broken", exe=exe), environment).initialise() is None


def test_arguments_put_config_options_before_user_options(environment):
    compiler = DefaultCompiler(make_config("gcc", options="-std=c++20 -Wall"), environment)

    args = compiler.build_arguments("in.cpp", "out.s", ["-O2"], {"intel": True})

    assert args == ["-std=c++20", "-Wall", "-masm=intel", "-O2", "-S", "-o", "out.s", "in.cpp"]


@pytest.mark.asyncio
async def test_compile_collects_assembly_and_tagged_output(environment, fake_cc):
    compiler = await DefaultCompiler(make_config("fake", exe=fake_cc), environment).initialise()

    result = await compiler.compile("int square(int);", ["-O2"], None, {"intel": True})

    assert result.code == 0
    assert [line.text for line in result.asm] == ["square:", "  ret"]
    assert "-masm=intel -O2 -S -o" in result.stdout[0].text
    [warning] = result.stderr
    assert warning.text == "<source>:2:5: warning: unused"
    assert warning.tag.line == 2
    assert warning.tag.column == 5
    assert environment.temp_dirs.tracked_count == 1
    assert not environment.is_busy()


@pytest.mark.asyncio
async def test_compile_writes_source_with_language_extension(environment, tmp_path):
    exe = write_script(
        tmp_path / "catcc",
        '#!/bin/sh\nfor arg in "$@"; do last="$arg"; done\nbasename "$last"\ncat "$last"\n',
    )
    compiler = DefaultCompiler(make_config("catcc", lang="rust", exe=exe), environment)

    result = await compiler.compile("fn main() {}", [], None, {})

    assert [line.text for line in result.stdout] == ["example.rs", "fn main() {}"]
    assert result.asm == []


@pytest.mark.asyncio
async def test_compile_timeout_is_compilation_failure(tmp_path):
    environment = CompilationEnvironment(
        compile_timeout=0.2, temp_dirs=TempDirTracker(base_dir=str(tmp_path))
    )
    exe = write_script(tmp_path / "slowcc", "#!/bin/sh\nexec sleep 5\n")
    compiler = DefaultCompiler(make_config("slow", exe=exe), environment)

    with pytest.raises(CompilationFailure) as excinfo:
        await compiler.compile("x", [], None, {})

    assert excinfo.value.code == -1
    assert "timed out" in excinfo.value.stderr
    assert not environment.is_busy()


@pytest.mark.asyncio
async def test_remote_factory_requires_remote_address(environment):
    factory = get_compiler_factory("remote")

    assert await factory(make_config("peer", compiler_type="remote"), environment, "c++") is None
    remote = await factory(
        make_config("peer", compiler_type="remote", remote="http://peer:10240"), environment, "c++"
    )
    assert remote.get_remote() == "http://peer:10240"
