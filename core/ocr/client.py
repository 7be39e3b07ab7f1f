import base64

import httpx
import openai

from core.ocr.exceptions import OcrError, OcrNetworkError


class VisionClient:
    """Vision model client built on an OpenAI-compatible chat API."""

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
        )

    def describe_document(
        self,
        *,
        model: str,
        prompt: str,
        content: bytes,
        mime_type: str,
    ) -> str:
        data_url = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    },
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise OcrNetworkError(f"Vision provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise OcrNetworkError(f"Vision provider API error: {exc}") from exc

        if not response.choices:
            raise OcrError("Vision model returned no choices")
        text = response.choices[0].message.content
        if text is None:
            raise OcrError("Vision model returned empty response")
        return text
