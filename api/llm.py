import time
from typing import List, Optional, Tuple

import requests

from api import config
from api.events import log_llm_event

EMPTY_COMPLETION_RESPONSE = (
    "I apologize, but I cannot provide a response at this moment. Please try again."
)

GUIDE_PERSONA = (
    "You are a wise spiritual guide offering compassionate guidance and insights "
    "based on Bahá'í teachings and the Hidden Words."
)

GUIDE_STYLE = (
    "When you provide spiritual guidance, naturally mention if there's a relevant "
    "Hidden Words passage by saying something like \"This reminds me of a beautiful "
    "passage from the Hidden Words...\" or \"There's a profound quote from the Hidden "
    "Words that speaks to this...\"\n\n"
    "Keep your response thoughtful, empathetic, and naturally flowing. Respond with "
    "empathy, wisdom, and gentle encouragement. Be concise but meaningful."
)

HISTORY_ROLES = {"user", "assistant"}


class LLMNotConfigured(Exception):
    pass


class LLMError(Exception):
    def __init__(self, status_code: Optional[int] = None, reason: str = "request_failed"):
        super().__init__(f"{reason} ({status_code})" if status_code else reason)
        self.status_code = status_code
        self.reason = reason


def _part_label(part: str) -> str:
    return (part or "").capitalize()


def build_system_prompt(quotation: Optional[dict]) -> str:
    sections = [GUIDE_PERSONA]
    if quotation:
        sections.append(
            "Here is a relevant Hidden Words passage that relates to the user's question: "
            f"\"{quotation['text']}\" ({quotation.get('addressee') or ''}, "
            f"{_part_label(quotation.get('part'))} #{quotation.get('number')})."
        )
    sections.append(GUIDE_STYLE)
    return "\n\n".join(sections)


def build_messages(message: str, history: Optional[List[dict]], quotation: Optional[dict]) -> List[dict]:
    messages = [{"role": "system", "content": build_system_prompt(quotation)}]
    recent = (history or [])[-config.HISTORY_TURNS:] if config.HISTORY_TURNS > 0 else []
    for item in recent:
        role = item.get("role")
        content = (item.get("content") or "").strip()
        if role not in HISTORY_ROLES or not content:
            continue
        messages.append({"role": role, "content": content})
    messages.append({"role": "user", "content": message})
    return messages


def generate_guidance(
    message: str,
    history: Optional[List[dict]] = None,
    quotation: Optional[dict] = None,
) -> Tuple[str, dict]:
    """Ask the completion service for a reply.

    Returns the reply text and a small metadata dict (model, elapsed_ms,
    empty). Raises LLMNotConfigured without an API key and LLMError on any
    transport or HTTP failure.
    """
    if not config.OPENROUTER_API_KEY:
        log_llm_event("llm_error", {"model": config.OPENROUTER_MODEL, "error": "not_configured"})
        raise LLMNotConfigured("OpenRouter API key not configured")

    headers = {
        "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
        "Content-Type": "application/json",
        "HTTP-Referer": config.OPENROUTER_REFERER,
        "X-Title": config.OPENROUTER_TITLE,
    }
    payload = {
        "model": config.OPENROUTER_MODEL,
        "messages": build_messages(message, history, quotation),
        "max_tokens": config.OPENROUTER_MAX_TOKENS,
        "temperature": config.OPENROUTER_TEMPERATURE,
    }
    start = time.perf_counter()
    try:
        res = requests.post(
            config.OPENROUTER_URL,
            json=payload,
            headers=headers,
            timeout=config.OPENROUTER_TIMEOUT_SEC,
        )
    except requests.RequestException as exc:
        log_llm_event("llm_error", {"model": config.OPENROUTER_MODEL, "error": "request_failed"})
        raise LLMError(reason="request_failed") from exc
    if not res.ok:
        log_llm_event(
            "llm_error",
            {"model": config.OPENROUTER_MODEL, "error": "http_status", "status": res.status_code},
        )
        raise LLMError(res.status_code, reason="http_status")
    try:
        data = res.json()
    except ValueError as exc:
        log_llm_event("llm_error", {"model": config.OPENROUTER_MODEL, "error": "invalid_json"})
        raise LLMError(res.status_code, reason="invalid_json") from exc

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    log_llm_event("llm_latency", {"model": config.OPENROUTER_MODEL, "elapsed_ms": elapsed_ms})
    if elapsed_ms > config.LLM_SLOW_MS:
        log_llm_event("llm_slow", {"model": config.OPENROUTER_MODEL, "elapsed_ms": elapsed_ms})

    choices = data.get("choices") or []
    content = ""
    if choices and isinstance(choices[0], dict):
        content = ((choices[0].get("message") or {}).get("content") or "").strip()
    meta = {"model": config.OPENROUTER_MODEL, "elapsed_ms": elapsed_ms, "empty": not content}
    return content or EMPTY_COMPLETION_RESPONSE, meta
