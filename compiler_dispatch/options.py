"""Parsing of user option strings and filter lists.

Options arrive as one shell-style string (``-O2 "foo bar" --flag=1``) and are
split into argument tokens with POSIX quoting rules. ``#`` is an ordinary
character rather than the start of a comment. Shell operators such as ``|`` or
``>`` are not arguments and are dropped.

Filters are named boolean toggles. A compiler has a default set; legacy
requests may replace it outright (``filters=a,b``), or add to it
(``addFilters=c``) and remove from it (``removeFilters=d``).
"""

from __future__ import annotations

import shlex
from typing import Dict, Iterable, List, Mapping, Optional

from compiler_dispatch.errors import BadRequest

Filters = Dict[str, bool]

_SHELL_OPERATOR_CHARS = frozenset("();<>|&")


def split_options(options: Optional[str]) -> List[str]:
    """Split a shell-style option string into argument tokens.

    Args:
        options: Raw option string, may be None or empty

    Returns:
        Ordered list of non-blank tokens with quoting resolved

    Raises:
        BadRequest: If the string has unbalanced quotes or a dangling escape
    """
    if not options or not options.strip():
        return []

    lexer = shlex.shlex(options, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        tokens = list(lexer)
    except ValueError as e:
        raise BadRequest(f"Unable to parse options '{options}': {e}") from e

    return [token for token in tokens if token.strip() and not _is_operator(token)]


def _is_operator(token: str) -> bool:
    return all(ch in _SHELL_OPERATOR_CHARS for ch in token)


def parse_filter_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated filter list, ignoring empty entries."""
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def compose_filters(
    defaults: Mapping[str, bool],
    replace: Optional[str] = None,
    add: Optional[str] = None,
    remove: Optional[str] = None,
) -> Filters:
    """Compute the effective filter set for a legacy request.

    An explicit ``replace`` list is taken exactly as given. Otherwise additions
    and then removals are applied to the defaults. Filter names are not
    validated.

    Args:
        defaults: The addressed compiler's default filters
        replace: Comma-separated list replacing the defaults
        add: Comma-separated list of filters to switch on
        remove: Comma-separated list of filters to drop

    Returns:
        New filter mapping; ``defaults`` is never modified
    """
    if replace:
        return _enabled(parse_filter_list(replace))

    filters: Filters = dict(defaults)
    for name in parse_filter_list(add):
        filters[name] = True
    for name in parse_filter_list(remove):
        filters.pop(name, None)

    return filters


def _enabled(names: Iterable[str]) -> Filters:
    return {name: True for name in names}
