"""
LLM client -- provider-agnostic completion call used by the LLM
interpreter to turn a question into a JSON query plan.

Providers:
  mock      -- echo back the prompt (tests / offline dev)
  openai    -- Chat Completions in JSON mode
  anthropic -- Messages API

API keys and model names come from Settings (env / .env).  Every
provider failure surfaces as ``RuntimeError`` so the interpreter can fall
back to keyword matching.
"""
from __future__ import annotations

import importlib
from types import ModuleType
from typing import Callable

from datachat.core.config import get_settings
from datachat.core.logging import get_logger

logger = get_logger(__name__)

SYSTEM_MESSAGE = "You are a data analyst. You answer with JSON query plans only."
MAX_TOKENS = 800


def _require_key(setting: str) -> str:
    key = getattr(get_settings(), setting)
    if not key:
        raise RuntimeError(
            f"{setting} is not set.  Set {setting.upper()} in your .env file or environment."
        )
    return key


def _load_sdk(package: str) -> ModuleType:
    try:
        return importlib.import_module(package)
    except ImportError as exc:
        raise RuntimeError(
            f"The '{package}' package is not installed.  Run: pip install datachat[llm]"
        ) from exc


def _mock(prompt: str) -> str:
    logger.info("LLM mock mode -- echoing prompt")
    return f"[MOCK] {prompt[:200]}"


def _openai(prompt: str) -> str:
    key = _require_key("openai_api_key")
    sdk = _load_sdk("openai")
    reply = sdk.OpenAI(api_key=key).chat.completions.create(
        model=get_settings().openai_model,
        messages=[
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": prompt},
        ],
        temperature=0.0,
        max_tokens=MAX_TOKENS,
        response_format={"type": "json_object"},
    )
    return reply.choices[0].message.content or ""


def _anthropic(prompt: str) -> str:
    key = _require_key("anthropic_api_key")
    sdk = _load_sdk("anthropic")
    reply = sdk.Anthropic(api_key=key).messages.create(
        model=get_settings().anthropic_model,
        system=SYSTEM_MESSAGE,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=MAX_TOKENS,
        temperature=0.0,
    )
    return reply.content[0].text if reply.content else ""


PROVIDERS: dict[str, Callable[[str], str]] = {
    "mock": _mock,
    "openai": _openai,
    "anthropic": _anthropic,
}


def call_llm(prompt: str, provider: str | None = None) -> str:
    """Send *prompt* to *provider* (default: ``LLM_PROVIDER``) and return the text.

    Raises
    ------
    NotImplementedError
        Unknown provider name.
    RuntimeError
        Missing API key or SDK package.
    """
    name = (provider or get_settings().llm_provider).lower()
    fn = PROVIDERS.get(name)
    if fn is None:
        raise NotImplementedError(
            f"LLM provider '{name}' is not supported.  Choose from: {', '.join(PROVIDERS)}"
        )
    logger.info("Calling LLM provider=%s prompt_len=%d", name, len(prompt))
    text = fn(prompt)
    logger.info("LLM provider=%s answered (%d chars)", name, len(text))
    return text
