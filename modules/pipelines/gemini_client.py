"""Thin wrapper around the google-genai client: one request, one response."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from modules.pipelines.errors import MissingApiKeyError, NoContentGeneratedError
from modules.utils.image_utils import decode_data_uri, mime_type_of, to_data_uri

try:
    from google import genai
except ImportError:  # pragma: no cover
    genai = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

IMAGE_AND_TEXT = ("IMAGE", "TEXT")


@dataclass(slots=True)
class ContentPart:
    """A single request part: either an inline image (data URI) or text."""

    text: Optional[str] = None
    image: Optional[str] = None

    @classmethod
    def from_image(cls, data_uri: str) -> "ContentPart":
        return cls(image=data_uri)

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)


@dataclass(slots=True)
class DispatchPayload:
    """Everything needed for one generate_content call."""

    model: str
    parts: List[ContentPart]
    response_modalities: Sequence[str] = IMAGE_AND_TEXT
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None
    use_web_search: bool = False
    expect_image: bool = True


@dataclass(slots=True)
class DispatchResult:
    """Normalized response: the first image (as data URI) and any text."""

    image: Optional[str] = None
    text: Optional[str] = None
    texts: List[str] = field(default_factory=list)


def ensure_genai_available() -> None:
    """Raise RuntimeError if google-genai is not installed."""
    if genai is None:
        raise RuntimeError("google-genai is not installed. Install the project dependencies first.")


class GeminiClient:
    """Lazily constructed google-genai client bound to one API key."""

    def __init__(self, api_key: Optional[str] = None) -> None:
        self._api_key = api_key or None
        self._client: Any = None

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Swap the API key and drop the cached client."""
        self._api_key = (api_key or "").strip() or None
        self._client = None

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise MissingApiKeyError()
        ensure_genai_available()
        self._client = genai.Client(api_key=self._api_key)
        return self._client

    def build_contents(self, parts: Sequence[ContentPart]) -> list[Any]:
        """Convert request parts into a single user Content."""
        ensure_genai_available()
        sdk_parts: list[Any] = []
        for part in parts:
            if part.image:
                sdk_parts.append(
                    genai.types.Part.from_bytes(
                        data=decode_data_uri(part.image),
                        mime_type=mime_type_of(part.image),
                    )
                )
            elif part.text is not None:
                sdk_parts.append(genai.types.Part.from_text(text=part.text))
        return [genai.types.Content(role="user", parts=sdk_parts)]

    def build_config(self, payload: DispatchPayload) -> Any:
        """Build the GenerateContentConfig, or None when nothing is set."""
        ensure_genai_available()
        config_kwargs: dict[str, Any] = {}
        if payload.response_modalities:
            config_kwargs["response_modalities"] = list(payload.response_modalities)

        image_kwargs: dict[str, Any] = {}
        if payload.aspect_ratio:
            image_kwargs["aspect_ratio"] = payload.aspect_ratio
        if payload.image_size:
            image_kwargs["image_size"] = payload.image_size
        if image_kwargs:
            config_kwargs["image_config"] = genai.types.ImageConfig(**image_kwargs)

        if payload.use_web_search:
            config_kwargs["tools"] = [genai.types.Tool(google_search=genai.types.GoogleSearch())]

        if not config_kwargs:
            return None
        return genai.types.GenerateContentConfig(**config_kwargs)

    def dispatch(self, payload: DispatchPayload) -> DispatchResult:
        """Send exactly one request and extract the first usable payload."""
        client = self._get_client()
        contents = self.build_contents(payload.parts)
        config = self.build_config(payload)
        logger.info(
            "generate_content: model=%s, parts=%d, aspectRatio=%s, imageSize=%s, webSearch=%s",
            payload.model,
            len(payload.parts),
            payload.aspect_ratio,
            payload.image_size,
            payload.use_web_search,
        )
        response = client.models.generate_content(
            model=payload.model,
            contents=contents,
            config=config,
        )
        result = extract_result(response)
        if payload.expect_image and result.image is None:
            raise NoContentGeneratedError()
        if not payload.expect_image and not result.text:
            raise NoContentGeneratedError("No content generated")
        return result


def _response_parts(response: Any) -> list[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def extract_result(response: Any) -> DispatchResult:
    """Pull the first inline image and the text fragments out of a response."""
    result = DispatchResult()
    for part in _response_parts(response):
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None) if inline is not None else None
        if data and result.image is None:
            mime_type = getattr(inline, "mime_type", None) or "image/png"
            result.image = to_data_uri(data, mime_type)
            continue
        text_value = getattr(part, "text", None)
        if isinstance(text_value, str) and text_value.strip() and not getattr(part, "thought", False):
            result.texts.append(text_value.strip())
    if result.texts:
        result.text = "\n".join(result.texts)
    return result
