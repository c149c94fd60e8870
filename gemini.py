from functools import lru_cache

from google import genai

from config import load_settings
from errors import ConfigurationError


@lru_cache(maxsize=1)
def get_client() -> genai.Client:
  settings = load_settings()
  if not settings.api_key:
    raise ConfigurationError("Missing GEMINI_API_KEY in environment or .env")
  return genai.Client(api_key=settings.api_key)
