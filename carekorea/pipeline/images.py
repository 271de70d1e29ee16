"""Image step: render the post's image prompts with Imagen 4 on Replicate.

Each rendered image is downloaded and re-uploaded to Supabase Storage so the
post does not depend on Replicate's short-lived delivery URLs. Images are
processed in batches of IMAGE_MAX_CONCURRENT with IMAGE_BATCH_DELAY seconds
between batches; Replicate rate-limits accounts without a payment method.
"""

from __future__ import annotations

import random
import re
import string
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import requests

from carekorea import config
from carekorea.errors import StoreError

_replicate_client = None

PROMPT_STYLE_PREFIX = "Ultra-realistic professional photograph, "
PROMPT_CONTEXT_SUFFIX = (
    ". Setting: Premium Korean medical clinic or dermatology center in Seoul's "
    "Gangnam district. Style: Editorial documentary photography, natural lighting, "
    "warm professional atmosphere, genuine expressions. Technical: 8K resolution, "
    "sharp focus, natural colors, professional color grading."
)


def get_replicate_client():
    global _replicate_client
    if _replicate_client is None:
        if not config.REPLICATE_API_TOKEN:
            raise ValueError("REPLICATE_API_TOKEN not set. Add it to your .env file.")
        import replicate

        _replicate_client = replicate.Client(api_token=config.REPLICATE_API_TOKEN)
    return _replicate_client


def enhance_prompt(base_prompt: str, keyword: str) -> str:
    """Wrap an image prompt in the photographic style and clinic setting."""
    enhanced = PROMPT_STYLE_PREFIX + base_prompt
    if keyword and keyword.lower() not in base_prompt.lower():
        enhanced = enhanced.replace(".", f" related to {keyword}.", 1)
    return enhanced + PROMPT_CONTEXT_SUFFIX


def _output_url(output) -> str:
    if isinstance(output, (list, tuple)):
        output = output[0] if output else ""
    url = getattr(output, "url", output)
    return str(url) if url else ""


# ── Storage upload ────────────────────────────────────────────────────────


def storage_path(file_name: str, output_format: str) -> str:
    sanitized = re.sub(r"[^a-z0-9-]", "-", file_name, flags=re.IGNORECASE)[:50]
    timestamp = int(time.time() * 1000)
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    extension = output_format if output_format in ("jpg", "png") else "webp"
    return f"generated/{timestamp}-{rand}-{sanitized}.{extension}"


def content_type_for(output_format: str) -> str:
    if output_format == "jpg":
        return "image/jpeg"
    if output_format == "png":
        return "image/png"
    return "image/webp"


def upload_to_storage(store, image_url: str, file_name: str, output_format: str) -> str:
    """Copy a rendered image into Storage; falls back to image_url on any failure."""
    print("     -> Uploading to storage...")
    try:
        response = requests.get(image_url, timeout=config.IMAGE_DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        public_url = store.upload_image(
            storage_path(file_name, output_format),
            response.content,
            content_type_for(output_format),
        )
    except (requests.RequestException, StoreError) as e:
        print(f"     Warning: storage upload failed ({e}), keeping the Replicate URL")
        return image_url
    print(f"     OK Uploaded: {public_url[:60]}...")
    return public_url


# ── Generation ────────────────────────────────────────────────────────────


def generate_single_image(
    metadata: dict,
    keyword: str,
    store,
    aspect_ratio: str,
    output_format: str,
    output_quality: int,
    client=None,
) -> dict:
    """Render one image and return {placeholder, url, alt, prompt, aspect_ratio}."""
    client = client or get_replicate_client()
    print(f"     Prompt: {metadata.get('prompt', '')[:80]}...")

    output = client.run(
        config.IMAGE_MODEL,
        input={
            "prompt": enhance_prompt(metadata.get("prompt", ""), keyword),
            "aspect_ratio": aspect_ratio,
            "output_format": output_format,
            "output_quality": output_quality,
            "negative_prompt": config.IMAGE_NEGATIVE_PROMPT,
        },
    )

    replicate_url = _output_url(output)
    if not replicate_url.startswith("http"):
        raise ValueError(f"Invalid image URL returned: {replicate_url!r}")

    url = upload_to_storage(
        store, replicate_url, f"{keyword}-{metadata.get('position', 'image')}", output_format
    )
    return {
        "placeholder": metadata.get("placeholder", ""),
        "url": url,
        "alt": metadata.get("alt", ""),
        "prompt": metadata.get("prompt", ""),
        "aspect_ratio": aspect_ratio,
    }


def generate_images(
    images: list[dict],
    keyword: str,
    locale: str,
    store,
    aspect_ratio: Optional[str] = None,
    output_format: Optional[str] = None,
    output_quality: Optional[int] = None,
    client=None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Render a list of image prompts in rate-limited batches.

    A failed image never fails the batch; it is reported in "errors".

    Returns:
        {images, total_generated, total_failed, total_cost, errors}
    """
    aspect_ratio = aspect_ratio or config.IMAGE_ASPECT_RATIO
    output_format = output_format or config.IMAGE_OUTPUT_FORMAT
    output_quality = output_quality or config.IMAGE_OUTPUT_QUALITY

    if client is None and not config.REPLICATE_API_TOKEN:
        print("  Warning: REPLICATE_API_TOKEN not set, skipping images")
        return {
            "images": [],
            "total_generated": 0,
            "total_failed": len(images),
            "total_cost": 0.0,
            "errors": [
                {"placeholder": img.get("placeholder", ""), "error": "REPLICATE_API_TOKEN not configured"}
                for img in images
            ],
        }

    print(f"  -> Generating {len(images)} images with {config.IMAGE_MODEL}")
    print(f"     {aspect_ratio} | {output_format} | quality {output_quality} | {keyword} ({locale})")

    generated, errors = [], []
    batch_size = max(1, config.IMAGE_MAX_CONCURRENT)
    total_batches = (len(images) + batch_size - 1) // batch_size

    for start in range(0, len(images), batch_size):
        batch = images[start:start + batch_size]
        print(f"  -> Batch {start // batch_size + 1}/{total_batches}")

        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            futures = [
                pool.submit(
                    generate_single_image, metadata, keyword, store,
                    aspect_ratio, output_format, output_quality, client,
                )
                for metadata in batch
            ]
            for offset, (metadata, future) in enumerate(zip(batch, futures)):
                number = start + offset + 1
                try:
                    generated.append(future.result())
                    print(f"  OK [{number}/{len(images)}] {metadata.get('position', '')}")
                except Exception as e:
                    print(f"  Warning: [{number}/{len(images)}] {metadata.get('position', '')} failed: {e}")
                    errors.append({"placeholder": metadata.get("placeholder", ""), "error": str(e)})

        if start + batch_size < len(images):
            sleep(config.IMAGE_BATCH_DELAY)

    total_cost = len(generated) * config.IMAGE_COST_PER_IMAGE
    print(f"  OK Images: {len(generated)}/{len(images)} generated, ${total_cost:.3f}")
    return {
        "images": generated,
        "total_generated": len(generated),
        "total_failed": len(errors),
        "total_cost": total_cost,
        "errors": errors,
    }


# ── HTML helpers ──────────────────────────────────────────────────────────


def create_image_html(image: dict, caption: Optional[str] = None) -> str:
    figcaption = (
        f'<figcaption class="text-center text-sm text-gray-500 mt-2 italic">{caption}</figcaption>'
        if caption else ""
    )
    return f"""
<figure class="my-8">
  <img
    src="{image['url']}"
    alt="{image['alt']}"
    class="w-full rounded-lg shadow-lg"
    loading="lazy"
    width="1792"
    height="1024"
  />
  {figcaption}
</figure>"""


def insert_images_into_content(content: str, images: list[dict], captions: Optional[dict] = None) -> str:
    """Replace each image's placeholder with a <figure> block.

    Tries, per image, the first form that matches: <p>[PH]</p>, an <img>
    whose src is [PH], then the bare [PH] text. Matching ignores case.
    """
    captions = captions or {}
    print(f"  -> Inserting {len(images)} images into content...")

    for image in images:
        name = re.escape(image["placeholder"].strip("[]"))
        figure = create_image_html(image, captions.get(image["placeholder"]))
        patterns = [
            rf"<p>\s*\[{name}\]\s*</p>",
            rf"<img[^>]*src=[\"']\[{name}\][\"'][^>]*/?>",
            rf"\[{name}\]",
        ]
        for pattern in patterns:
            regex = re.compile(pattern, re.IGNORECASE)
            if regex.search(content):
                content = regex.sub(lambda _m: figure, content)
                break
        else:
            print(f"  Warning: placeholder [{image['placeholder'].strip('[]')}] not found in content")

    return content
