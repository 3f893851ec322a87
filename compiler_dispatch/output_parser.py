"""Splitting of raw compiler output into structured line entries."""

import re
from typing import List, Optional

from compiler_dispatch.models import OutputLine, OutputTag

SOURCE_PLACEHOLDER = "<source>"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_SOURCE_LOCATION = re.compile(r"^<source>:(\d+)(?::(\d+))?:\s*(.*)$")


def parse_output(text: Optional[str], input_filename: Optional[str] = None) -> List[OutputLine]:
    """Parse raw process output into a list of lines.

    ANSI colour codes are stripped and references to the scratch input file are
    rewritten to ``<source>``. Lines pointing at a source location
    (``<source>:12:5: error: ...``) get a tag carrying the line, column and
    message.

    Args:
        text: Raw output, may be None
        input_filename: Path of the file the compiler was run on, if any

    Returns:
        One entry per line, without a trailing empty line
    """
    if not text:
        return []

    lines = []
    for raw_line in text.splitlines():
        line = _ANSI_ESCAPE.sub("", raw_line).rstrip()
        if input_filename:
            line = line.replace(input_filename, SOURCE_PLACEHOLDER)
        lines.append(OutputLine(text=line, tag=_parse_tag(line)))

    while lines and not lines[-1].text:
        lines.pop()
    return lines


def _parse_tag(line: str) -> Optional[OutputTag]:
    match = _SOURCE_LOCATION.match(line)
    if not match:
        return None
    return OutputTag(
        line=int(match.group(1)),
        column=int(match.group(2) or 0),
        text=match.group(3),
    )
