"""Direct chat-model generation through LangChain.

This backend talks to the model itself instead of going through the
notes endpoint, using the same release-notes prompt. It also supports
continuation: a resumed request replays the partial notes as an
assistant turn and asks the model to carry on.
"""

from typing import Any, AsyncIterator, Optional

import openai
from langchain_core.language_models.chat_models import BaseChatModel

from diff_digest.config.env_schema import EnvironmentConfig
from diff_digest.config.models import GenerationBackend, GenerationConfig
from diff_digest.generation.prompts import build_messages
from diff_digest.generation.service import (
    GenerationRequest,
    GenerationService,
    HttpGenerationService,
)
from diff_digest.utils.exceptions import (
    InvalidResponseError,
    NetworkError,
    RateLimitedError,
    ServerError,
    TimeoutError,
)
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


def _chunk_text(chunk: Any) -> str:
    content = chunk.content if hasattr(chunk, "content") else chunk
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Content blocks: keep the text parts
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


class LLMGenerationService(GenerationService):
    """Streams release notes straight from a LangChain chat model."""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    @classmethod
    def from_config(cls, config: GenerationConfig, api_key: str) -> "LLMGenerationService":
        """Create an OpenAI-backed service.

        Args:
            config: Generation settings (model, temperature, timeout).
            api_key: OpenAI API key.
        """
        from langchain_openai import ChatOpenAI

        kwargs = {
            "model": config.model,
            "api_key": api_key,
            "streaming": True,
            "timeout": config.timeout_seconds,
            "max_retries": 0,
        }
        if config.temperature is not None:
            kwargs["temperature"] = config.temperature
        return cls(ChatOpenAI(**kwargs))

    async def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        messages = build_messages(
            request.prompt_title, request.prompt_body, request.partial_text
        )
        try:
            async for chunk in self.llm.astream(messages):
                text = _chunk_text(chunk)
                if text:
                    yield text
        except openai.APITimeoutError as e:
            raise TimeoutError(
                "Request timed out. The diff might be too large or the server is busy.",
                operation="generate_notes",
                details={"error": str(e)},
            )
        except openai.APIConnectionError as e:
            raise NetworkError(
                "Network error. Please check your connection and try again.",
                details={"error": str(e)},
            )
        except openai.RateLimitError as e:
            raise RateLimitedError(
                "Too many requests. Please wait before generating more notes.",
                status_code=429,
                details={"error": str(e)},
            )
        except openai.InternalServerError as e:
            raise ServerError(
                "Server error while generating notes. Please try again.",
                status_code=e.status_code,
            )
        except openai.APIStatusError as e:
            raise InvalidResponseError(
                f"Generation request rejected: {e.message}",
                details={"status_code": e.status_code},
            )


def create_generation_service(
    config: GenerationConfig,
    base_url: str,
    env: Optional[EnvironmentConfig] = None,
) -> GenerationService:
    """Create the configured generation backend.

    Args:
        config: Generation settings.
        base_url: Base URL for the HTTP backend.
        env: Environment settings; the llm backend needs OPENAI_API_KEY.

    Raises:
        ConfigurationError: If the llm backend is selected without a key.
    """
    if config.backend is GenerationBackend.LLM:
        api_key = (env or EnvironmentConfig()).require_openai_key()
        logger.info(f"Using llm generation backend ({config.model})")
        return LLMGenerationService.from_config(config, api_key)

    logger.info(f"Using http generation backend at {base_url}")
    return HttpGenerationService(base_url, timeout_seconds=config.timeout_seconds)
