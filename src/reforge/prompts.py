"""Prompt text used by the default chat session."""

import json
from typing import Any

from jinja2 import Environment, StrictUndefined, UndefinedError

from .types import TemplateError

DEFAULT_SYSTEM_INSTRUCTIONS = """\
You are an expert JSON transformation engine. Your task is to accurately convert data payloads from one format to another.

You will be provided with example transformations (Source JSON -> Target JSON).

Learn the mapping rules from these examples.

When presented with new Source JSON, apply the learned transformation rules to produce a new Target JSON payload.

Always respond ONLY with a valid JSON object that strictly adheres to the expected output format.

Do not include any additional text, explanations, or formatting before or after the JSON object.
"""

REBUILD_TEMPLATE = """\
The previous JSON payload (below) failed validation.
The server's error message is quoted afterward.

---------------- BAD PAYLOAD ----------------
{{ payload | json_pretty }}

---------------- SERVER ERROR ----------------
{{ error }}

Please return a NEW JSON payload that corrects the issue.
Respond with JSON only - no comments or explanations.
"""


def json_pretty(value: Any) -> str:
    """
    Encode a value as pretty-printed JSON.

    Values that are not JSON-serializable fall back to ``str()`` so the
    model still sees what went wrong.

    Usage in template: {{ data | json_pretty }}
    """
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,  # prompts, not HTML
    keep_trailing_newline=True,
)
_env.filters["json_pretty"] = json_pretty


def render_prompt(template: str, variables: dict[str, Any] | None = None) -> str:
    """
    Render an inline prompt template.

    Raises:
        TemplateError: If a variable is missing or rendering fails
    """
    try:
        return _env.from_string(template).render(**(variables or {}))
    except UndefinedError as e:
        raise TemplateError(f"Missing template variable: {e}") from e
    except Exception as e:
        raise TemplateError(f"Template rendering failed: {e}") from e


def rebuild_prompt(last_value: Any, error_message: str, template: str = REBUILD_TEMPLATE) -> str:
    """Build the feedback prompt asking for a corrected payload."""
    return render_prompt(template, {"payload": last_value, "error": error_message})
