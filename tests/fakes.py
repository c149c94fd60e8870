"""
Backend doubles for the image and text protocols.
"""

from PIL import Image

from models import PanelContinuation
from utils import pil_to_reference, to_data_url


def make_image_url(color: str = "red", size: tuple[int, int] = (8, 8)) -> str:
    return to_data_url(pil_to_reference(Image.new("RGB", size, color)))


class FakeSynthesizer:
    """ImageSynthesizer double. `fail_after` makes every call past that count raise."""

    def __init__(self, fail_after: int | None = None, fail_all: bool = False):
        self.fail_after = fail_after
        self.fail_all = fail_all
        self.panel_calls = []
        self.reference_calls = []
        self.edit_calls = []
        self.extend_calls = []

    def _maybe_fail(self, calls: list):
        if self.fail_all or (self.fail_after is not None and len(calls) > self.fail_after):
            raise RuntimeError("backend unavailable")

    async def generate_reference(self, prompt):
        self.reference_calls.append(prompt)
        self._maybe_fail(self.reference_calls)
        return make_image_url("blue")

    async def generate_panel(self, prompt, references, aspect_ratio, seed=None):
        self.panel_calls.append({"prompt": prompt, "references": references, "aspect_ratio": aspect_ratio, "seed": seed})
        self._maybe_fail(self.panel_calls)
        return make_image_url("green")

    async def edit(self, prompt, original, mask, reference=None):
        self.edit_calls.append(prompt)
        self._maybe_fail(self.edit_calls)
        return make_image_url("yellow")

    async def extend(self, story_context, canvas, mask):
        self.extend_calls.append(story_context)
        self._maybe_fail(self.extend_calls)
        return make_image_url("purple")


class FakeContinuator:
    """TextContinuator double returning a scripted response (or raising)."""

    def __init__(self, panels: list[PanelContinuation] | None = None, error: Exception | None = None):
        self.panels = panels or []
        self.error = error
        self.calls = []

    async def continue_story(self, prompt, request, context_image=None):
        self.calls.append({"prompt": prompt, "request": request, "context_image": context_image})
        if self.error:
            raise self.error
        return self.panels
