"""Architectural render service built on the Gemini image and text models."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from config.settings import AppConfig
from modules.optimization.prompt_builder import (
    build_analysis_prompt,
    build_prompt,
    build_style_prompt,
    UPSCALE_PROMPT,
)
from modules.pipelines.errors import InputValidationError, NoContentGeneratedError
from modules.pipelines.gemini_client import (
    ContentPart,
    DispatchPayload,
    DispatchResult,
    GeminiClient,
)
from modules.pipelines.retry import dispatch_with_retry
from modules.pipelines.task_types import IMAGE_SIZES, UPSCALE_IMAGE_SIZE, TaskType
from modules.utils.image_utils import (
    ASPECT_RATIOS,
    BASE_IMAGE_MAX_PX,
    REFERENCE_IMAGE_MAX_PX,
    UPSCALE_IMAGE_MAX_PX,
    resize_for_transmission,
)

logger = logging.getLogger(__name__)

MAX_REFERENCE_IMAGES = 3
ANALYSIS_FALLBACK = "Unable to analyse the image."


@dataclass(slots=True)
class GenerationRequest:
    """Request data for one architectural generation call."""

    task_type: TaskType
    base_image: Optional[str] = None
    reference_images: List[str] = field(default_factory=list)
    instruction: str = ""
    aspect_ratio: str = "1:1"
    image_size: str = "1K"
    project_link: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.reference_images) > MAX_REFERENCE_IMAGES:
            raise InputValidationError(
                f"At most {MAX_REFERENCE_IMAGES} reference images are supported."
            )
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise InputValidationError(f"Unsupported aspect ratio '{self.aspect_ratio}'.")
        if self.image_size not in IMAGE_SIZES:
            raise InputValidationError(f"Unsupported image size '{self.image_size}'.")


@dataclass(slots=True)
class GenerationResult:
    """Result payload for a generation call."""

    image: str
    prompt: str
    task_type: TaskType
    aspect_ratio: str
    text: Optional[str] = None


class RenderService:
    """Facade over the Gemini models used by the studio."""

    def __init__(
        self,
        config: AppConfig,
        client: Optional[GeminiClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config
        self.client = client or GeminiClient(config.gemini_api_key)
        self._sleep = sleep
        self._jitter = jitter

    @property
    def has_api_key(self) -> bool:
        return self.client.has_api_key

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Use a key entered at runtime instead of the configured one."""
        self.client.set_api_key(api_key)
        self.config.gemini_api_key = (api_key or "").strip() or None

    def _dispatch(self, payload: DispatchPayload) -> DispatchResult:
        kwargs = {"sleep": self._sleep}
        if self._jitter is not None:
            kwargs["jitter"] = self._jitter
        return dispatch_with_retry(
            lambda: self.client.dispatch(payload),
            self.config.max_retries,
            self.config.initial_retry_delay_ms,
            **kwargs,
        )

    def build_payload(self, request: GenerationRequest) -> DispatchPayload:
        """Resize images and assemble the request for a generation call."""
        parts: list[ContentPart] = []
        if request.base_image:
            parts.append(ContentPart.from_image(resize_for_transmission(request.base_image, BASE_IMAGE_MAX_PX)))
        for reference in request.reference_images:
            parts.append(ContentPart.from_image(resize_for_transmission(reference, REFERENCE_IMAGE_MAX_PX)))

        bundle = build_prompt(request.task_type, request.instruction, request.project_link)
        parts.append(ContentPart.from_text(bundle.text))

        return DispatchPayload(
            model=self.config.image_model_id,
            parts=parts,
            aspect_ratio=request.aspect_ratio,
            image_size=request.image_size,
            use_web_search=bool((request.project_link or "").strip()),
        )

    def generate_view(self, request: GenerationRequest) -> GenerationResult:
        """Generate an architectural view for a task type."""
        payload = self.build_payload(request)
        result = self._dispatch(payload)
        if result.image is None:
            raise NoContentGeneratedError()
        return GenerationResult(
            image=result.image,
            prompt=payload.parts[-1].text or "",
            task_type=request.task_type,
            aspect_ratio=request.aspect_ratio,
            text=result.text,
        )

    def upscale(self, image: str, aspect_ratio: str = "1:1") -> str:
        """Upscale a render to photographic quality without touching geometry."""
        if aspect_ratio not in ASPECT_RATIOS:
            raise InputValidationError(f"Unsupported aspect ratio '{aspect_ratio}'.")
        payload = DispatchPayload(
            model=self.config.image_model_id,
            parts=[
                ContentPart.from_image(resize_for_transmission(image, UPSCALE_IMAGE_MAX_PX)),
                ContentPart.from_text(UPSCALE_PROMPT),
            ],
            aspect_ratio=aspect_ratio,
            image_size=UPSCALE_IMAGE_SIZE,
        )
        result = self._dispatch(payload)
        if result.image is None:
            raise NoContentGeneratedError()
        return result.image

    def analyze(self, image: str, context: str = "") -> str:
        """Return a short critique with improvement suggestions."""
        payload = DispatchPayload(
            model=self.config.analysis_model_id,
            parts=[
                ContentPart.from_image(resize_for_transmission(image, UPSCALE_IMAGE_MAX_PX)),
                ContentPart.from_text(build_analysis_prompt(context)),
            ],
            response_modalities=("TEXT",),
            expect_image=False,
        )
        try:
            result = self._dispatch(payload)
        except NoContentGeneratedError:
            logger.info("Analysis returned no text, using fallback message")
            return ANALYSIS_FALLBACK
        return result.text or ANALYSIS_FALLBACK

    def generate_style_images(self, description: str, count: int = 3) -> list[str]:
        """Generate style reference photographs one after the other.

        A fixed pause separates consecutive calls to stay under the
        per-minute rate limit. Any failure aborts the whole run.
        """
        if not description.strip():
            raise InputValidationError("Describe the style you want before generating references.")
        payload = DispatchPayload(
            model=self.config.image_model_id,
            parts=[ContentPart.from_text(build_style_prompt(description))],
            aspect_ratio="1:1",
        )
        images: list[str] = []
        for index in range(count):
            result = self._dispatch(payload)
            if result.image is None:
                raise NoContentGeneratedError()
            images.append(result.image)
            if index < count - 1:
                self._sleep(self.config.style_request_pause_ms / 1000.0)
        return images
