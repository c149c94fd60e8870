import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

AUTOSAVE_KEY = "autosave_current"
EXPORT_VERSION = "1.0"


class Settings(BaseModel):
  api_key: str | None = None
  text_model: str = 'gemini-2.5-flash'
  image_model: str = 'gemini-2.5-flash-image'
  reference_model: str = 'imagen-4.0-generate-001'
  data_dir: Path = Path("nanobanana_data")
  log_level: str = 'INFO'


def load_settings() -> Settings:
  """Read settings from the environment (and a local .env file)."""
  load_dotenv()
  defaults = Settings()
  return Settings(
    api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
    text_model=os.getenv("TEXT_MODEL", defaults.text_model),
    image_model=os.getenv("IMAGE_MODEL", defaults.image_model),
    reference_model=os.getenv("REFERENCE_MODEL", defaults.reference_model),
    data_dir=Path(os.getenv("DATA_DIR", str(defaults.data_dir))),
    log_level=os.getenv("LOG_LEVEL", defaults.log_level),
  )


def setup_logging(level: str = 'INFO') -> None:
  root = logging.getLogger()
  root.setLevel(level.upper())
  root.handlers.clear()
  handler = logging.StreamHandler(sys.stdout)
  handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
  root.addHandler(handler)
