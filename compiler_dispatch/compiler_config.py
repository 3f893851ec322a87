"""Loading of compiler configuration from JSON.

The file holds either ``{"compilers": [...]}`` or a bare list of compiler
entries. Each entry is validated into a ``CompilerConfig``.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from compiler_dispatch.errors import ConfigurationError
from compiler_dispatch.models import CompilerConfig

logger = logging.getLogger(__name__)


def parse_compiler_configs(data: Any) -> List[CompilerConfig]:
    """Validate decoded configuration data.

    Args:
        data: Decoded JSON, a dict with a ``compilers`` list or a list

    Returns:
        One CompilerConfig per entry, in file order

    Raises:
        ConfigurationError: If the data is not shaped like a compiler list or an
            entry fails validation
    """
    if isinstance(data, dict):
        entries = data.get("compilers")
    else:
        entries = data

    if not isinstance(entries, list):
        raise ConfigurationError("Compiler configuration must be a list of compilers")

    configs = []
    for index, entry in enumerate(entries):
        try:
            configs.append(CompilerConfig.model_validate(entry))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid compiler entry #{index}: {e}") from e
    return configs


def load_compiler_configs(path: Optional[Union[str, Path]]) -> List[CompilerConfig]:
    """Read and validate the compiler configuration file.

    A missing path setting means no compilers are configured.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    if not path:
        logger.warning("No compiler configuration file set; starting with no compilers")
        return []

    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Unable to read compiler configuration {config_path}: {e}") from e

    configs = parse_compiler_configs(data)
    logger.info("Loaded %d compiler(s) from %s", len(configs), config_path)
    return configs
