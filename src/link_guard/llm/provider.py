"""LLM provider factory — supports OpenAI, Google Gemini, and vLLM."""

from __future__ import annotations

from langchain_core.language_models import BaseChatModel

from link_guard.config import config


def get_llm(temperature: float | None = None, max_tokens: int | None = None) -> BaseChatModel:
    """Create an LLM instance based on the configured provider.

    Returns a LangChain-compatible chat model.
    """
    provider = config.llm.provider.lower()
    temperature = config.llm.temperature if temperature is None else temperature
    max_tokens = config.llm.max_tokens if max_tokens is None else max_tokens

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.llm.openai_model,
            api_key=config.llm.openai_api_key,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    elif provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=config.llm.google_model,
            google_api_key=config.llm.google_api_key,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

    elif provider == "vllm":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.llm.vllm_model,
            openai_api_base=config.llm.vllm_base_url,
            openai_api_key="not-needed",
            temperature=temperature,
            max_tokens=max_tokens,
        )

    else:
        raise ValueError(
            f"Unknown LLM provider: {provider}. "
            f"Supported: openai, google, vllm"
        )
