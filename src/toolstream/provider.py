import logging
from collections.abc import AsyncIterator

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from toolstream.config import AgentConfig
from toolstream.errors import TransportError

logger = logging.getLogger(__name__)


class ModelProvider:
    """Source of raw chat-completion stream bytes.

    Implementations yield the response body exactly as it arrives and
    raise :class:`TransportError` for network or HTTP failures.
    """

    def stream(
            self,
            config: AgentConfig,
            messages: list[dict],
            tools: list[dict],
    ) -> AsyncIterator[bytes]:
        raise NotImplementedError


class OpenAICompatibleProvider(ModelProvider):
    """Streams from any OpenAI-compatible ``/chat/completions`` endpoint.

    The SDK handles auth, connection retries and status checks; the body
    is read raw so the caller can decode the event stream itself.
    """

    def __init__(self, http_client=None):
        self._http_client = http_client
        self._clients: dict[tuple, AsyncOpenAI] = {}

    def client_for(self, config: AgentConfig) -> AsyncOpenAI:
        key = (config.api_endpoint, config.api_key, config.max_retries, config.timeout)
        client = self._clients.get(key)
        if client is None:
            client = AsyncOpenAI(
                base_url=config.api_endpoint,
                api_key=config.api_key,
                max_retries=config.max_retries,
                timeout=config.timeout,
                http_client=self._http_client,
            )
            self._clients[key] = client
        return client

    async def stream(
            self,
            config: AgentConfig,
            messages: list[dict],
            tools: list[dict],
    ) -> AsyncIterator[bytes]:
        client = self.client_for(config)
        try:
            async with client.chat.completions.with_streaming_response.create(
                model=config.model,
                messages=messages,
                stream=True,
                tools=tools,
                tool_choice="auto",
            ) as response:
                async for chunk in response.iter_bytes():
                    yield chunk
        except APIStatusError as e:
            logger.error(f"Model endpoint returned {e.status_code}: {e.message}")
            raise TransportError(
                f"{e.status_code} {e.message}", status_code=e.status_code,
            ) from e
        except APITimeoutError as e:
            logger.error("Model request timed out")
            raise TransportError("request timed out") from e
        except APIConnectionError as e:
            logger.error(f"Could not reach model endpoint: {e}")
            raise TransportError(str(e)) from e
        except httpx.HTTPError as e:
            # Failures after the response started are not wrapped by the SDK.
            logger.error(f"Model stream interrupted: {e}")
            raise TransportError(f"stream interrupted: {e}") from e
