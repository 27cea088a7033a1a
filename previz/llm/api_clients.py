"""
Model API Clients

Thin httpx wrappers around OpenAI-compatible chat-completion and image
endpoints. Errors are raised once with the service's own message; callers
decide what to do with them. Nothing here retries.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from previz.core.exceptions import (
    CreditsExhaustedError,
    ImageGenerationError,
    InputError,
    LLMProviderError,
    RateLimitError,
    UpstreamServiceError,
)
from previz.core.image_utils import b64_to_data_url, parse_data_url
from previz.core.logging_config import get_logger

logger = get_logger("llm.api_clients")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```)."""
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def error_message(response: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return f"HTTP {response.status_code}"


def raise_for_service(
    response: httpx.Response,
    service: str,
    error_cls: type = UpstreamServiceError
) -> None:
    """Raise the matching upstream error for a non-2xx response."""
    if response.is_success:
        return
    if response.status_code == 429:
        raise RateLimitError(service)
    if response.status_code == 402:
        raise CreditsExhaustedError(service)
    raise error_cls(service, error_message(response), status_code=response.status_code)


@dataclass
class ChatResponse:
    """The first choice of a chat completion."""
    content: str = ""
    tool_arguments: Optional[Dict[str, Any]] = None
    images: List[str] = field(default_factory=list)
    model: str = ""
    usage: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageResponse:
    """A generated image as a data URL."""
    image_data: str
    model: str = ""
    generation_time_ms: int = 0
    revised_prompt: Optional[str] = None


class ChatCompletionsClient:
    """Client for ``POST {base_url}/chat/completions``."""

    service = "text-generation"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Dict[str, Any]] = None,
        modalities: Optional[List[str]] = None
    ) -> ChatResponse:
        payload: Dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if tools:
            payload["tools"] = tools
        if tool_choice:
            payload["tool_choice"] = tool_choice
        if modalities:
            payload["modalities"] = modalities

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise LLMProviderError(self.service, f"Request failed: {e}")

        raise_for_service(response, self.service, LLMProviderError)

        try:
            data = response.json()
            message = data["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise LLMProviderError(self.service, "Malformed completion response")

        return ChatResponse(
            content=message.get("content") or "",
            tool_arguments=self._tool_arguments(message),
            images=[
                image["image_url"]["url"]
                for image in message.get("images") or []
                if image.get("image_url", {}).get("url")
            ],
            model=data.get("model", model),
            usage=data.get("usage") or {},
        )

    def _tool_arguments(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        tool_calls = message.get("tool_calls") or []
        if not tool_calls:
            return None
        arguments = tool_calls[0].get("function", {}).get("arguments")
        if isinstance(arguments, dict):
            return arguments
        try:
            parsed = json.loads(arguments or "{}")
        except ValueError:
            raise LLMProviderError(self.service, "Tool call arguments are not valid JSON")
        return parsed if isinstance(parsed, dict) else None


class ImageGenerationClient:
    """
    Client for OpenAI-compatible image endpoints.

    Plain prompts go to ``/images/generations``; prompts with reference
    images go to ``/images/edits`` as multipart uploads.
    """

    service = "image-generation"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 180,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def generate(
        self,
        prompt: str,
        model: str,
        size: str,
        quality: str = "high",
        reference_images: Optional[List[str]] = None
    ) -> ImageResponse:
        start = time.monotonic()
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                if reference_images:
                    files = [
                        await self._reference_file(client, index, url)
                        for index, url in enumerate(reference_images)
                    ]
                    response = await client.post(
                        f"{self.base_url}/images/edits",
                        headers=headers,
                        data={"model": model, "prompt": prompt, "size": size, "quality": quality, "n": "1"},
                        files=files,
                    )
                else:
                    response = await client.post(
                        f"{self.base_url}/images/generations",
                        headers=headers,
                        json={
                            "model": model,
                            "prompt": prompt,
                            "n": 1,
                            "size": size,
                            "quality": quality,
                            "output_format": "png",
                        },
                    )
        except httpx.HTTPError as e:
            raise ImageGenerationError(self.service, f"Request failed: {e}")

        raise_for_service(response, self.service, ImageGenerationError)

        try:
            item = response.json()["data"][0]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ImageGenerationError(self.service, "Malformed image response", response.status_code)
        if not isinstance(item, dict):
            raise ImageGenerationError(self.service, "Malformed image response", response.status_code)

        if item.get("b64_json"):
            image_data = b64_to_data_url(item["b64_json"])
        elif item.get("url"):
            image_data = item["url"]
        else:
            raise ImageGenerationError(self.service, "Image response contained no image", response.status_code)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug(f"Image generated in {elapsed_ms}ms")
        return ImageResponse(
            image_data=image_data,
            model=model,
            generation_time_ms=elapsed_ms,
            revised_prompt=item.get("revised_prompt"),
        )

    async def _reference_file(self, client: httpx.AsyncClient, index: int, url: str) -> tuple:
        """Multipart entry for one reference image given as a data URL or an http(s) URL."""
        if url.startswith(("http://", "https://")):
            response = await client.get(url)
            if not response.is_success:
                raise ImageGenerationError(
                    self.service,
                    f"Could not fetch reference image {index + 1} (HTTP {response.status_code})",
                )
            mime = response.headers.get("content-type", "image/png").split(";")[0].strip()
            raw = response.content
        else:
            try:
                mime, raw = parse_data_url(url)
            except InputError as e:
                raise ImageGenerationError(self.service, f"Reference image {index + 1}: {e.message}")
        extension = mime.split("/")[-1]
        return ("image[]", (f"reference_{index}.{extension}", raw, mime))
