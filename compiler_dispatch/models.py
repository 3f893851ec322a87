"""Data models for compiler configuration, compile requests and results."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CompilerConfig(BaseModel):
    """Configuration for one compiler, as read from the compilers file.

    Immutable for the lifetime of a registry generation. ``exe`` may be a
    relative name, in which case the compiler is treated as virtual and is never
    stat'ed.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    lang: str
    exe: str
    compiler_type: str = Field(default="default", alias="compilerType")
    remote: Optional[str] = None
    name: Optional[str] = None
    default_filters: Dict[str, bool] = Field(default_factory=dict, alias="defaultFilters")
    options: str = ""
    version_flag: str = Field(default="--version", alias="versionFlag")

    @property
    def display_name(self) -> str:
        return self.name or self.id


class CompilerInfo(BaseModel):
    """Public description of a live compiler, served to clients."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    lang: str
    compiler_type: str = Field(alias="compilerType")
    version: Optional[str] = None
    remote: Optional[str] = None
    default_filters: Dict[str, bool] = Field(default_factory=dict, alias="defaultFilters")


class OutputTag(BaseModel):
    """Source location attached to a diagnostic line."""

    line: int
    column: int = 0
    text: str


class OutputLine(BaseModel):
    """A single line of compiler output."""

    text: str
    tag: Optional[OutputTag] = None


class CompilationResult(BaseModel):
    """Result of running a compiler on one request's source."""

    model_config = ConfigDict(frozen=True)

    code: int
    stdout: List[OutputLine] = Field(default_factory=list)
    stderr: List[OutputLine] = Field(default_factory=list)
    asm: Optional[List[OutputLine]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CompileOptions(BaseModel):
    """``options`` object of a structured compile request."""

    model_config = ConfigDict(extra="allow")

    user_arguments: Optional[str] = Field(default=None, alias="userArguments")
    compiler_options: Optional[Any] = Field(default=None, alias="compilerOptions")
    filters: Optional[Dict[str, bool]] = None


class CompileRequestBody(BaseModel):
    """Body of a structured compile request."""

    model_config = ConfigDict(extra="allow")

    source: Optional[str] = None
    compiler: Optional[str] = None
    lang: Optional[str] = None
    options: CompileOptions = Field(default_factory=CompileOptions)
