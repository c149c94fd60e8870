import asyncio
import logging
from typing import Protocol

from config import Settings, load_settings
from compiler import build_extend_prompt
from errors import ContinuationError
from models import ContinuationRequest, ContinuationResponse, PanelContinuation, ReferenceImage
from retry import DEFAULT_POLICY, RetryPolicy, with_fallback
from utils import generate_image, generate_reference_image, placeholder_image, structured

logger = logging.getLogger(__name__)

CANDIDATE_COUNT = 2


class ImageSynthesizer(Protocol):
  async def generate_reference(self, prompt: str) -> str: ...

  async def generate_panel(self, prompt: str, references: list[ReferenceImage], aspect_ratio: str | None, seed: int | None = None) -> str: ...

  async def edit(self, prompt: str, original: ReferenceImage, mask: ReferenceImage, reference: ReferenceImage | None = None) -> str: ...

  async def extend(self, story_context: str, canvas: ReferenceImage, mask: ReferenceImage) -> str: ...


class TextContinuator(Protocol):
  async def continue_story(self, prompt: str, request: ContinuationRequest, context_image: ReferenceImage | None = None) -> list[PanelContinuation]: ...


async def generate_panels(
  synthesizer: ImageSynthesizer,
  prompt: str,
  references: list[ReferenceImage],
  aspect_ratio: str | None,
  seed: int | None = None,
  policy: RetryPolicy = DEFAULT_POLICY,
) -> list[str]:
  """Two independent page candidates, each retried once and replaced by a placeholder if it still fails."""
  logger.info(f"Generating {CANDIDATE_COUNT} candidates with {len(references)} reference images")

  async def candidate(n: int) -> str:
    return await with_fallback(
      lambda: synthesizer.generate_panel(prompt, references, aspect_ratio, seed),
      lambda: placeholder_image(1024, 576),
      policy,
      label=f"candidate {n}",
    )

  return list(await asyncio.gather(*[candidate(n) for n in range(1, CANDIDATE_COUNT + 1)]))


class GeminiImageSynthesizer:
  def __init__(self, settings: Settings | None = None):
    self.settings = settings or load_settings()

  async def generate_reference(self, prompt: str) -> str:
    logger.info(f"Generating reference image with prompt: {prompt}")
    return await generate_reference_image(prompt, self.settings.reference_model)

  async def generate_panel(self, prompt, references, aspect_ratio, seed=None) -> str:
    return await generate_image(prompt, references, self.settings.image_model, aspect_ratio, seed)

  async def edit(self, prompt, original, mask, reference=None) -> str:
    images = [original, mask] + ([reference] if reference else [])
    return await generate_image(prompt, images, self.settings.image_model)

  async def extend(self, story_context, canvas, mask) -> str:
    return await generate_image(build_extend_prompt(story_context), [canvas, mask], self.settings.image_model)


class GeminiTextContinuator:
  def __init__(self, settings: Settings | None = None):
    self.settings = settings or load_settings()

  async def continue_story(self, prompt, request, context_image=None) -> list[PanelContinuation]:
    logger.info(f"Generating story continuation for {request.panel_count} panels")
    images = [context_image] if context_image else []
    try:
      result: ContinuationResponse = await structured(prompt, ContinuationResponse, self.settings.text_model, images)
    except Exception as e:
      raise ContinuationError("Story continuation request failed", {"error": str(e)}) from e
    if not result.panel_details:
      raise ContinuationError("Story continuation returned no panels", {"panel_count": request.panel_count})
    return result.panel_details


def fallback_reference() -> str:
  return placeholder_image(512, 512)

