"""
Thin wrapper around the OpenAI chat API: prompt in, text out, best-effort JSON.
"""
import json
import re
from typing import Any, Iterable, List, Optional
import logging

from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")

def make_client(api_key: str, timeout: float = 30.0, max_retries: int = 2) -> OpenAI:
    """Create the OpenAI client used by every prompt in the service."""
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

def chat_raw(
    client: Any,
    model: str,
    system_prompt: str,
    user_prompt: str,
    temperature: float = 0.7,
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
) -> str:
    kwargs = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": temperature,
    }
    if max_tokens:
        kwargs["max_tokens"] = max_tokens
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    resp = client.chat.completions.create(**kwargs)
    if not resp.choices:
        return ""
    return resp.choices[0].message.content or ""

def strip_code_fence(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip()).strip()

def safe_json_extract(text: str) -> Any:
    """
    Parse JSON out of a model reply. Falls back to the outermost {...} or [...]
    span when the reply has prose around the payload.
    Raises ValueError if nothing parses.
    """
    text = strip_code_fence(text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Try whichever bracket opens first so an object is not mistaken for its inner list
    pairs = sorted((("[", "]"), ("{", "}")), key=lambda p: (text.find(p[0]) == -1, text.find(p[0])))
    for open_ch, close_ch in pairs:
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError(f"No JSON payload in model reply: {text[:80]!r}")

def coerce_json_list(text: str, keys: Iterable[str] = ("items",), item_key: Optional[str] = None) -> List[Any]:
    """
    Best-effort list out of a model reply.

    - a JSON array is returned as-is
    - a JSON object yields the first list stored under one of `keys`,
      or [obj] when it carries `item_key` (a single item)
    - anything else yields []
    """
    try:
        data = safe_json_extract(text)
    except ValueError as e:
        logger.warning(f"Falling back to empty list: {e}")
        return []

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
        if item_key and item_key in data:
            return [data]
    logger.warning(f"Unexpected JSON shape from model: {type(data).__name__}")
    return []
