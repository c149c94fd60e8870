import asyncio
import base64
import logging
import os
import re
from io import BytesIO

import requests
from PIL import Image, ImageDraw, ImageFont
from PIL.PngImagePlugin import PngInfo
from google.genai import types
from pydantic import BaseModel

from errors import SynthesisError
from gemini import get_client
from models import ReferenceImage

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "nanobanana-placeholder"
_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


def clean_string(string: str) -> str:
  return string.replace("/", "_")


# --- image encoding ---

def to_data_url(image: ReferenceImage) -> str:
  return f"data:{image.mime_type};base64,{image.data}"


def parse_data_url(url: str) -> ReferenceImage:
  match = _DATA_URL.match(url.strip())
  if not match:
    raise ValueError("Not a base64 data URL")
  return ReferenceImage(mime_type=match.group("mime"), data=match.group("data"))


def pil_to_reference(image: Image.Image, pnginfo: PngInfo | None = None) -> ReferenceImage:
  buf = BytesIO()
  image.save(buf, format="PNG", pnginfo=pnginfo)
  return ReferenceImage(mime_type="image/png", data=base64.b64encode(buf.getvalue()).decode("ascii"))


def reference_to_pil(image: ReferenceImage) -> Image.Image:
  return Image.open(BytesIO(base64.b64decode(image.data)))


def _read_image_bytes(url: str) -> bytes:
  if url.startswith(("http://", "https://")):
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content
  if os.path.exists(url):
    with open(url, "rb") as f:
      return f.read()
  raise FileNotFoundError(f"Image not found: {url}")


async def load_reference(url: str) -> ReferenceImage:
  """Load an image (data URL, http(s) URL or local path) as PNG, keeping its dimensions."""
  try:
    if url.startswith("data:"):
      raw = base64.b64decode(parse_data_url(url).data)
    else:
      raw = await asyncio.to_thread(_read_image_bytes, url)
    image = Image.open(BytesIO(raw))
    image.load()
    return pil_to_reference(image)
  except Exception as e:
    logger.error(f"Failed to load image from {url[:64]}: {e}")
    raise


# --- placeholders ---

def placeholder_image(width: int = 1024, height: int = 1024, text: str = "Generation Failed") -> str:
  """A grey image with a centered label, used wherever a generation could not produce a result."""
  canvas = Image.new("RGB", (width, height), "#4A5568")
  draw = ImageDraw.Draw(canvas)
  font = ImageFont.load_default()
  bbox = draw.textbbox((0, 0), text, font=font)
  x = (width - (bbox[2] - bbox[0])) // 2
  y = (height - (bbox[3] - bbox[1])) // 2
  draw.text((x, y), text, fill="white", font=font)
  info = PngInfo()
  info.add_text(PLACEHOLDER_KEY, text)
  return to_data_url(pil_to_reference(canvas, info))


def is_placeholder(url: str) -> bool:
  try:
    image = reference_to_pil(parse_data_url(url))
  except Exception:
    return False
  return PLACEHOLDER_KEY in image.info


# --- gemini calls ---

def to_part(image: ReferenceImage) -> types.Part:
  return types.Part.from_bytes(data=base64.b64decode(image.data), mime_type=image.mime_type)


async def structured(prompt: str, schema: type[BaseModel], model: str, images: list[ReferenceImage] = []):
  try:
    contents = [prompt, *[to_part(img) for img in images]]
    response = await get_client().aio.models.generate_content(
      model=model,
      contents=contents,
      config={
          "response_mime_type": "application/json",
          "response_schema": schema,
      },
    )
    if response.parsed is None:
      raise ValueError("Structured response could not be parsed")
    return response.parsed
  except Exception as e:
    logger.error(f"Structured generation failed: {e}")
    raise


async def generate_image(
  prompt: str,
  images: list[ReferenceImage],
  model: str,
  aspect_ratio: str | None = None,
  seed: int | None = None,
) -> str:
  """Multimodal image generation. Returns the first image part as a data URL."""
  try:
    config = types.GenerateContentConfig(
      response_modalities=["IMAGE", "TEXT"],
      seed=seed,
      image_config=types.ImageConfig(aspect_ratio=aspect_ratio) if aspect_ratio else None,
    )
    response = await get_client().aio.models.generate_content(
      model=model,
      contents=[prompt, *[to_part(img) for img in images]],
      config=config,
    )
    for candidate in response.candidates or []:
      if candidate.content is None:
        continue
      for part in candidate.content.parts or []:
        if part.text is not None:
          logger.debug(part.text)
        elif part.inline_data is not None:
          data = base64.b64encode(part.inline_data.data).decode("ascii")
          return to_data_url(ReferenceImage(mime_type=part.inline_data.mime_type or "image/png", data=data))
    raise SynthesisError("Generated content did not include a valid image part.")
  except Exception as e:
    logger.error(f"Image generation failed: {e}")
    raise


async def generate_reference_image(prompt: str, model: str) -> str:
  try:
    response = await get_client().aio.models.generate_images(
      model=model,
      prompt=prompt,
      config=types.GenerateImagesConfig(
        number_of_images=1,
        output_mime_type="image/jpeg",
        aspect_ratio="1:1",
      ),
    )
    if not response.generated_images:
      raise SynthesisError("No reference image was returned.")
    data = base64.b64encode(response.generated_images[0].image.image_bytes).decode("ascii")
    return to_data_url(ReferenceImage(mime_type="image/jpeg", data=data))
  except Exception as e:
    logger.error(f"Reference image generation failed: {e}")
    raise
