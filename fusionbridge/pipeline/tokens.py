import json
import re
from typing import Any, Dict, Optional

from loguru import logger

from fusionbridge.pipeline.facts import MISSING, resolve_path

TOKEN_RE = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(getattr(value, "value", value))


def resolve_template(template: Optional[str], facts: Dict[str, Any]) -> Optional[str]:
    """
    Replace `{{ path.to.fact }}` tokens.

    Unknown paths keep the token as written, null facts become "",
    dicts and lists are rendered as JSON.
    """
    if not isinstance(template, str):
        return template

    def _sub(match: "re.Match[str]") -> str:
        path = match.group(1)
        value = resolve_path(facts, path)
        if value is MISSING:
            logger.debug(f"[Tokens] Path '{path}' not found, keeping token")
            return match.group(0)
        return _render(value)

    return TOKEN_RE.sub(_sub, template)
