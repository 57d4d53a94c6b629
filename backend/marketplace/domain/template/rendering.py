"""{{variable}} substitution for chat templates."""
import re
from typing import List, Mapping, Optional

from marketplace.domain.common.errors import MissingVariablesError

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def extract_variables(text: str) -> List[str]:
    """Placeholder names in order of first appearance, without duplicates."""
    seen: List[str] = []
    for name in VARIABLE_PATTERN.findall(text or ""):
        if name not in seen:
            seen.append(name)
    return seen


def render(template_text: str, variables: Optional[Mapping[str, object]]) -> str:
    """Substitute every placeholder. Absent or empty values raise MissingVariablesError."""
    variables = variables or {}
    missing = [
        name for name in extract_variables(template_text)
        if variables.get(name) is None or str(variables.get(name)) == ""
    ]
    if missing:
        raise MissingVariablesError(missing)
    return VARIABLE_PATTERN.sub(lambda m: str(variables[m.group(1)]), template_text)
