"""Compiler type for GCC/Clang-style command line compilers.

The compiler is probed once at construction time with its version flag, and
each compile runs ``exe <options> -S -o <output> <input>`` in a fresh scratch
directory.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compilers.base import BaseCompiler
from compiler_dispatch.errors import CompilationFailure, InternalError
from compiler_dispatch.models import CompilationResult, CompilerConfig, OutputLine
from compiler_dispatch.options import split_options
from compiler_dispatch.output_parser import parse_output

logger = logging.getLogger(__name__)

LANGUAGE_EXTENSIONS = {
    "c": ".c",
    "c++": ".cpp",
    "cuda": ".cu",
    "d": ".d",
    "fortran": ".f90",
    "go": ".go",
    "rust": ".rs",
    "swift": ".swift",
}
DEFAULT_EXTENSION = ".cpp"
OUTPUT_FILENAME = "output.s"


class DefaultCompiler(BaseCompiler):
    """Runs a local compiler executable and collects its assembly output."""

    async def initialise(self) -> Optional["DefaultCompiler"]:
        """Probe the executable for its version.

        Returns:
            self if the compiler answered, None if it could not be run
        """
        argv = [self.config.exe, self.config.version_flag]
        try:
            code, stdout, stderr = await self._run(argv, timeout=self.env.compile_timeout)
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("Unable to probe compiler %s (%s): %s", self.id, self.config.exe, e)
            return None

        if code != 0:
            logger.warning(
                "Compiler %s version probe exited with code %d: %s",
                self.id,
                code,
                stderr.strip(),
            )
            return None

        version_text = (stdout or stderr).strip()
        self.version = version_text.splitlines()[0] if version_text else None
        logger.info("Compiler %s is %s", self.id, self.version or "(unknown version)")
        return self

    def build_arguments(
        self,
        input_file: str,
        output_file: str,
        options: List[str],
        filters: Dict[str, bool],
    ) -> List[str]:
        args = split_options(self.config.options)
        if filters.get("intel"):
            args.append("-masm=intel")
        args.extend(options)
        args.extend(["-S", "-o", output_file, input_file])
        return args

    async def compile(
        self,
        source: str,
        options: List[str],
        backend_options: Any,
        filters: Dict[str, bool],
    ) -> CompilationResult:
        async with self.env.slot():
            dirpath = self.env.temp_dirs.mkdtemp()
            extension = LANGUAGE_EXTENSIONS.get(self.lang, DEFAULT_EXTENSION)
            input_file = os.path.join(dirpath, "example" + extension)
            output_file = os.path.join(dirpath, OUTPUT_FILENAME)

            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, _write_text, input_file, source)

            argv = [self.config.exe] + self.build_arguments(input_file, output_file, options, filters)
            logger.debug("Running %s", argv)
            try:
                code, stdout, stderr = await self._run(
                    argv, timeout=self.env.compile_timeout, cwd=dirpath
                )
            except asyncio.TimeoutError:
                raise CompilationFailure(
                    code=-1,
                    stdout="",
                    stderr=f"Compilation timed out after {self.env.compile_timeout}s",
                )
            except OSError as e:
                raise InternalError(f"Unable to run compiler {self.id}: {e}") from e

            asm_text = await loop.run_in_executor(None, _read_text, output_file)

        return CompilationResult(
            code=code,
            stdout=parse_output(stdout, input_file),
            stderr=parse_output(stderr, input_file),
            asm=[OutputLine(text=line) for line in asm_text.splitlines()],
        )

    async def _run(
        self,
        argv: List[str],
        timeout: float,
        cwd: Optional[str] = None,
    ) -> Tuple[int, str, str]:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise
        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )


def _write_text(path: str, text: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def _read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except FileNotFoundError:
        return ""


async def create_default_compiler(
    config: CompilerConfig,
    environment: CompilationEnvironment,
    lang: str,
) -> Optional[DefaultCompiler]:
    """Factory for the ``default`` compiler type."""
    return await DefaultCompiler(config, environment).initialise()
