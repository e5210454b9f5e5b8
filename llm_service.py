# llm_service.py
import httpx
import logging
from typing import Optional
from fastapi import HTTPException

import config
from models import ChatMessage, ChatRequest, ChatResponse, ChatUsage

logger = logging.getLogger(__name__)


class LLMService:
    """
    Client for an OpenAI-compatible chat completions endpoint.

    Every failure surfaces as an HTTPException so callers can treat timeouts,
    connection problems and bad replies the same way.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        api_url: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.model = model or config.LLM_MODEL
        self.api_url = api_url or config.LLM_API_URL
        self.max_tokens = max_tokens or config.LLM_MAX_TOKENS
        self.timeout = timeout or config.LLM_TIMEOUT_SECONDS
        # Tests swap in an httpx.MockTransport here.
        self._transport = transport

    def build_request(self, prompt: str, system_prompt: Optional[str] = None, temperature: Optional[float] = None) -> ChatRequest:
        messages = []
        if system_prompt:
            messages.append(ChatMessage(role="system", content=system_prompt))
        messages.append(ChatMessage(role="user", content=prompt))
        return ChatRequest(
            model=self.model,
            messages=messages,
            max_completion_tokens=self.max_tokens,
            temperature=temperature,
        )

    async def chat(self, prompt: str, system_prompt: Optional[str] = None, temperature: Optional[float] = None) -> ChatResponse:
        """Sends a prompt and returns the model's reply text."""
        if not self.api_key:
            raise HTTPException(status_code=500, detail="OPENAI_API_KEY is not configured on the server.")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        # Temperature is left out unless asked for; some models reject anything but their default.
        payload = self.build_request(prompt, system_prompt, temperature).model_dump(exclude_none=True)

        logger.debug("Sending chat request to %s (model=%s)", self.api_url, self.model)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.api_url, headers=headers, json=payload)
                response.raise_for_status()

                response_data = response.json()
                content = response_data.get("choices", [{}])[0].get("message", {}).get("content", "")

                if not content:
                    raise HTTPException(status_code=502, detail="LLM returned an empty response.")

                usage = response_data.get("usage")
                return ChatResponse(
                    content=content.strip(),
                    model=response_data.get("model", self.model),
                    usage=ChatUsage.model_validate(usage) if isinstance(usage, dict) else None,
                )

            except httpx.TimeoutException:
                raise HTTPException(status_code=504, detail="Request to LLM service timed out.")
            except httpx.HTTPStatusError as e:
                error_detail = f"LLM service returned an error: {e.response.status_code}."
                if e.response.status_code == 401:
                    error_detail += " Please check the API key."
                raise HTTPException(status_code=502, detail=error_detail)
            except httpx.RequestError as e:
                raise HTTPException(status_code=503, detail=f"Could not connect to LLM service: {e}")
            # ValueError covers undecodable bytes, bad JSON and pydantic validation errors.
            except (ValueError, IndexError, KeyError, AttributeError, TypeError):
                raise HTTPException(status_code=500, detail="Failed to parse a valid response from the LLM service.")
