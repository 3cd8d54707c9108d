"""Chat completion client for the learning assistant (OpenAI or Anthropic).

Usage:
    from learnsphere.services.ai_client import ai_chat

    text = await ai_chat(
        [
            {"role": "system", "content": "You are a patient course tutor."},
            {"role": "user", "content": "Explain what a foreign key is."},
        ],
        use_case="cheap",   # "cheap" or None for MODEL_NAME
    )

The provider follows the model name: "claude-*" goes to Anthropic, anything
else to the configured AI_PROVIDER. Calls are retried with backoff; the last
error is re-raised to the caller.
"""

import logging

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from learnsphere.config import settings

logger = logging.getLogger(__name__)

OPENAI = "openai"
ANTHROPIC = "anthropic"


def _resolve_model(use_case: str | None) -> str:
    if use_case == "cheap" and settings.cheap_model:
        return settings.cheap_model
    return settings.model_name


def _provider_for(model: str) -> str:
    if model.lower().startswith("claude-"):
        return ANTHROPIC
    return ANTHROPIC if settings.ai_provider.lower() == ANTHROPIC else OPENAI


def _log_retry(retry_state) -> None:
    logger.warning(
        "AI call failed (attempt %d), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


_with_retries = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(Exception),
    before_sleep=_log_retry,
    reraise=True,
)


async def ai_chat(
    messages: list[dict],
    *,
    use_case: str | None = None,
    temperature: float = 0.4,
    max_tokens: int = 1024,
) -> str:
    """Send a chat completion and return the assistant's text."""
    model = _resolve_model(use_case)
    if _provider_for(model) == ANTHROPIC:
        return await _anthropic_chat(messages, model, temperature, max_tokens)
    return await _openai_chat(messages, model, temperature, max_tokens)


@_with_retries
async def _openai_chat(messages: list[dict], model: str, temperature: float, max_tokens: int) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=settings.api_key)
    response = await client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return response.choices[0].message.content


@_with_retries
async def _anthropic_chat(messages: list[dict], model: str, temperature: float, max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    # Anthropic takes the system prompt as a parameter, not a message
    system = "\n".join(m["content"] for m in messages if m["role"] == "system")
    turns = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]

    kwargs: dict = {
        "model": model,
        "messages": turns,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if system:
        kwargs["system"] = system

    response = await client.messages.create(**kwargs)
    return response.content[0].text
