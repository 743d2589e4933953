from __future__ import annotations

import re
from typing import Mapping

PLACEHOLDERS = ("host", "bind", "port", "address", "data_dir")

_PLACEHOLDER_RE = re.compile(r"\{(" + "|".join(PLACEHOLDERS) + r")\}")


def render(template: str, values: Mapping[str, str]) -> str:
    """Substitute `{host}`-style placeholders, leaving any other braces alone."""

    def sub(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return _PLACEHOLDER_RE.sub(sub, template)
