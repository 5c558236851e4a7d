"""Sequential batch workflows tying rendering, credits and history together."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from modules.optimization.prompt_builder import apply_night_mode
from modules.pipelines.errors import InputValidationError
from modules.pipelines.generation import GenerationRequest, RenderService
from modules.pipelines.task_types import IMAGE_SIZES
from modules.services.app_state import AppState
from modules.services.credit_service import CreditService, Operation, credit_cost
from modules.services.history_service import BatchHistory, HistoryBatch
from modules.utils.image_utils import aspect_ratio_of

logger = logging.getLogger(__name__)

UPSCALE_HISTORY_LABEL = "Photorealistic upscale"
STYLE_REFERENCE_COUNT = 3


class StudioWorkflow:
    """Run user actions as all-or-nothing batches.

    Credits are checked before the first call and debited once after the
    whole batch succeeded. A failure anywhere in the batch propagates and
    leaves both the balance and the history untouched.
    """

    def __init__(
        self,
        renderer: RenderService,
        credits: CreditService,
        history: BatchHistory,
        state: Optional[AppState] = None,
    ) -> None:
        self.renderer = renderer
        self.credits = credits
        self.history = history
        self.state = state or AppState()

    def run_generation(
        self,
        images: Sequence[str],
        instruction: str = "",
        image_size: str = "1K",
        night_mode: bool = False,
    ) -> HistoryBatch:
        """Generate one view per base image, or a single view from text alone."""
        instruction = (instruction or "").strip()
        if not images and not instruction:
            raise InputValidationError("Provide at least one image or an instruction.")
        if image_size not in IMAGE_SIZES:
            raise InputValidationError(f"Unsupported image size '{image_size}'.")
        if night_mode:
            instruction = apply_night_mode(instruction)

        cost = credit_cost(Operation.GENERATION, len(images))
        self.credits.ensure_affordable(cost)

        task_type = self.state.active_task
        references = list(self.state.reference_images)
        sources: List[Optional[str]] = list(images) or [None]

        with self.state.begin_batch():
            pairs: list[tuple[Optional[str], str]] = []
            for index, source in enumerate(sources, start=1):
                logger.info("Generating image %d/%d (%s)", index, len(sources), task_type.value)
                request = GenerationRequest(
                    task_type=task_type,
                    base_image=source,
                    reference_images=references,
                    instruction=instruction,
                    aspect_ratio=aspect_ratio_of(source) if source else "1:1",
                    image_size=image_size,
                    project_link=self.state.project_link,
                )
                result = self.renderer.generate_view(request)
                pairs.append((source, result.image))

            self.credits.charge(cost)
            return self.history.add(task_type, instruction, pairs, references)

    def run_upscale(self, images: Sequence[str]) -> HistoryBatch:
        """Upscale every image at its own closest aspect ratio."""
        if not images:
            raise InputValidationError("Add at least one image to upscale.")
        cost = credit_cost(Operation.UPSCALE, len(images))
        self.credits.ensure_affordable(cost)

        with self.state.begin_batch():
            pairs: list[tuple[Optional[str], str]] = []
            for index, source in enumerate(images, start=1):
                logger.info("Upscaling image %d/%d", index, len(images))
                pairs.append((source, self.renderer.upscale(source, aspect_ratio_of(source))))

            self.credits.charge(cost)
            return self.history.add(self.state.active_task, UPSCALE_HISTORY_LABEL, pairs)

    def run_analysis(self, image: Optional[str], context: str = "") -> str:
        """Critique one image and return the model's suggestions."""
        if not image:
            raise InputValidationError("Add an image to analyse.")
        cost = credit_cost(Operation.ANALYSIS)
        self.credits.ensure_affordable(cost)

        with self.state.begin_batch():
            critique = self.renderer.analyze(image, context)
            self.credits.charge(cost)
            return critique

    def run_style_references(self, description: str) -> List[str]:
        """Generate style photographs and add them to the reference images."""
        if not (description or "").strip():
            raise InputValidationError("Describe the style you want before generating references.")
        cost = credit_cost(Operation.STYLE_GENERATION, STYLE_REFERENCE_COUNT)
        self.credits.ensure_affordable(cost)

        with self.state.begin_batch():
            images = self.renderer.generate_style_images(description, STYLE_REFERENCE_COUNT)
            self.credits.charge(cost)
        return self.state.add_reference_images(images)
