"""Central configuration for the content generation pipeline."""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Paths ──────────────────────────────────────────────────────────────────
ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"
KEYWORDS_IMPORT_DIR = DATA_DIR / "keywords"
OUTPUT_DIR = ROOT_DIR / "output"
GSC_TOKEN_PATH = ROOT_DIR / "gsc_token.json"
SEO_GUIDE_PATH = ROOT_DIR / "docs" / "google-seo-guide.md"

# ── API Keys ───────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN", "")
SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
UPSTASH_VECTOR_REST_URL = os.getenv("UPSTASH_VECTOR_REST_URL", "")
UPSTASH_VECTOR_REST_TOKEN = os.getenv("UPSTASH_VECTOR_REST_TOKEN", "")
GOOGLE_CREDENTIALS_PATH = os.getenv("GOOGLE_CREDENTIALS_PATH", "credentials.json")
GSC_SITE_URL = os.getenv("GSC_SITE_URL", "https://getcarekorea.com")
SITE_BASE_URL = os.getenv("SITE_BASE_URL", "https://getcarekorea.com")

# ── Claude settings ────────────────────────────────────────────────────────
CLAUDE_MODEL = "claude-sonnet-4-20250514"
CLAUDE_MAX_TOKENS = 16000
CLAUDE_TEMPERATURE = 0.7
TRANSLATION_MODEL = "claude-sonnet-4-5"

# ── OpenAI (embeddings for retrieval) ─────────────────────────────────────
EMBEDDING_MODEL = "text-embedding-3-small"
SEO_GUIDE_BATCH_DELAY = 0.5  # seconds between index batches

# ── Cost estimates (USD) ──────────────────────────────────────────────────
CLAUDE_INPUT_COST_PER_1K = 0.003
CLAUDE_OUTPUT_COST_PER_1K = 0.015
RAG_COST = 0.0001
IMAGE_COST_PER_IMAGE = 0.02

# ── Locales ────────────────────────────────────────────────────────────────
SUPPORTED_LOCALES = ["ko", "en", "ja", "zh-CN", "zh-TW", "th", "mn", "ru"]

LOCALE_DISPLAY_NAMES = {
    "ko": "한국어",
    "en": "English",
    "ja": "日本語",
    "zh-CN": "简体中文",
    "zh-TW": "繁體中文",
    "th": "ไทย",
    "mn": "Монгол",
    "ru": "Русский",
}

LOCALE_FLAGS = {
    "ko": "🇰🇷",
    "en": "🇺🇸",
    "ja": "🇯🇵",
    "zh-CN": "🇨🇳",
    "zh-TW": "🇹🇼",
    "th": "🇹🇭",
    "mn": "🇲🇳",
    "ru": "🇷🇺",
}

DEFAULT_LOCALE = "en"
DEFAULT_CATEGORY = "general"

# ── Pipeline settings ──────────────────────────────────────────────────────
MAX_PERSONA_RETRIES = 5
PERSONA_RETRY_DELAY = 1  # seconds; waits 1, 2, 3, 4 between attempts
PERSONA_FALLBACK_ATTEMPT = 3  # from this attempt on, accept en / any persona
DEFAULT_IMAGE_COUNT = 3
DEFAULT_TRANSLATION_CONCURRENCY = 3
DAILY_GENERATION_LIMIT = 5
INCLUDE_RAG = True
INCLUDE_IMAGES = True
AUTO_PUBLISH = False
PRIORITY_THRESHOLD = 0
AUTO_GENERATE_ENABLED = True

# ── Image generation (Imagen 4 via Replicate) ─────────────────────────────
IMAGE_MODEL = "google/imagen-4"
IMAGE_ASPECT_RATIO = "16:9"
IMAGE_OUTPUT_FORMAT = "png"  # Imagen 4 accepts jpg or png only
IMAGE_OUTPUT_QUALITY = 90
IMAGE_MAX_CONCURRENT = 1
IMAGE_BATCH_DELAY = 12  # seconds between batches (Replicate rate limit)
IMAGE_DOWNLOAD_TIMEOUT = 120
IMAGE_STORAGE_BUCKET = "blog-images"
IMAGE_NEGATIVE_PROMPT = (
    "blurry, low quality, distorted, deformed, ugly, bad anatomy, watermark, "
    "signature, text overlay, cartoon, anime, illustration, 3d render, CGI"
)

# ── Publishing ─────────────────────────────────────────────────────────────
AUTO_PUBLISH_ENABLED = True
MIN_PUBLISH_QUALITY_SCORE = 75
MIN_PUBLISH_CONTENT_CHARS = 500
MAX_PUBLISH_PER_RUN = 10

# ── Search Console ─────────────────────────────────────────────────────────
GSC_DAYS = 28
GSC_ROW_LIMIT = 1000


# ── Database overrides ─────────────────────────────────────────────────────

# system_settings key -> {json field: (config attribute, converter)}
_SETTINGS_MAPPING = {
    "content_generation": {
        "default_locale": ("DEFAULT_LOCALE", str),
        "default_category": ("DEFAULT_CATEGORY", str),
        "max_retries": ("MAX_PERSONA_RETRIES", int),
    },
    "cron_auto_generate": {
        "enabled": ("AUTO_GENERATE_ENABLED", bool),
        "batch_size": ("DAILY_GENERATION_LIMIT", int),
        "include_rag": ("INCLUDE_RAG", bool),
        "include_images": ("INCLUDE_IMAGES", bool),
        "image_count": ("DEFAULT_IMAGE_COUNT", int),
        "auto_publish": ("AUTO_PUBLISH", bool),
        "priority_threshold": ("PRIORITY_THRESHOLD", int),
    },
    "cron_auto_publish": {
        "enabled": ("AUTO_PUBLISH_ENABLED", bool),
        "max_publish_per_run": ("MAX_PUBLISH_PER_RUN", int),
        "min_quality_score": ("MIN_PUBLISH_QUALITY_SCORE", int),
    },
}


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value.strip().lower() in ("true", "1", "yes"):
            return True
        if value.strip().lower() in ("false", "0", "no"):
            return False
        raise ValueError(value)
    return bool(value)


def apply_db_settings(settings: dict) -> list[str]:
    """Override module values with rows read from the system_settings table.

    Returns the list of config attributes that were changed.
    """
    config = sys.modules[__name__]
    applied = []
    for key, fields in _SETTINGS_MAPPING.items():
        values = settings.get(key) or {}
        if not isinstance(values, dict):
            print(f"  Warning: settings '{key}' is not an object, ignoring")
            continue
        for field, (attr, converter) in fields.items():
            if field not in values or values[field] is None:
                continue
            convert = _to_bool if converter is bool else converter
            try:
                setattr(config, attr, convert(values[field]))
                applied.append(attr)
                print(f"  Settings override: {attr} = {getattr(config, attr)}")
            except (ValueError, TypeError):
                print(f"  Warning: invalid value for {key}.{field}: {values[field]}")
    return applied
