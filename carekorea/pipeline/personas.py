"""Author persona selection and the writer persona used in prompts.

Every post is attributed to one of the interpreter personas in the
author_personas table. Selection favours interpreters who speak the keyword's
locale and share its specialty, and spreads posts evenly: the persona with
the fewest posts (including those already assigned in the current batch)
wins. When the database lookup keeps failing the fetch is retried with a
linear backoff, relaxing the locale requirement on later attempts.
"""

from __future__ import annotations

import random
import time
from typing import Callable, Optional

from carekorea import config
from carekorea.errors import StoreError

# ── Writer persona data ───────────────────────────────────────────────────

KOREAN_NAMES = [
    ("김", "서연", "Kim Seo-yeon"),
    ("이", "민준", "Lee Min-joon"),
    ("박", "지우", "Park Ji-woo"),
    ("최", "하은", "Choi Ha-eun"),
    ("정", "준호", "Jung Joon-ho"),
    ("강", "수빈", "Kang Soo-bin"),
    ("조", "예은", "Cho Ye-eun"),
    ("윤", "시우", "Yoon Si-woo"),
    ("장", "하린", "Jang Ha-rin"),
    ("임", "도윤", "Im Do-yoon"),
    ("한", "서준", "Han Seo-joon"),
    ("오", "수아", "Oh Soo-ah"),
    ("서", "지훈", "Seo Ji-hoon"),
    ("신", "유진", "Shin Yoo-jin"),
    ("권", "민서", "Kwon Min-seo"),
]

SPECIALTIES = {
    "plastic-surgery": ("성형외과", "Plastic Surgery"),
    "dermatology": ("피부과", "Dermatology"),
    "dental": ("치과", "Dental Care"),
    "health-checkup": ("건강검진", "Health Checkup"),
    "ophthalmology": ("안과", "Ophthalmology"),
    "orthopedics": ("정형외과", "Orthopedics"),
    "fertility": ("난임치료", "Fertility Treatment"),
    "hair-transplant": ("모발이식", "Hair Transplant"),
    "general": ("종합의료", "General Medical"),
}

CERTIFICATIONS = [
    "TOPIK Level 6",
    "Medical Interpreter Certification",
    "International Medical Tourism Coordinator",
    "Registered Nurse License",
    "Healthcare Interpreter",
    "TOEIC 950+",
    "JLPT N1",
    "HSK Level 6",
]

LANGUAGE_COMBINATIONS = [
    ["English", "Chinese"],
    ["English", "Japanese"],
    ["English", "Thai"],
    ["Chinese", "Japanese"],
    ["English", "Russian"],
    ["English", "Mongolian"],
    ["Chinese", "English", "Japanese"],
    ["English", "Thai", "Chinese"],
]

LANGUAGE_NAMES = {
    "ko": "Korean",
    "en": "English",
    "ja": "Japanese",
    "zh-CN": "Chinese",
    "zh-TW": "Chinese",
    "th": "Thai",
    "mn": "Mongolian",
    "ru": "Russian",
}

TONES = ["professional", "friendly", "expert"]


# ── DB persona helpers ────────────────────────────────────────────────────


def _speaks(persona: dict, locale: str) -> bool:
    languages = persona.get("languages")
    if not isinstance(languages, list):
        return False
    return any(isinstance(lang, dict) and lang.get("code") == locale for lang in languages)


def normalize_persona(row: dict) -> dict:
    """Flatten an author_personas row (JSONB name / bio_short) into author data."""
    name = row.get("name") or {}
    bio_short = row.get("bio_short") or {}
    slug = row.get("slug", "")
    return {
        "id": row.get("id"),
        "slug": slug,
        "name_en": name.get("en") or name.get("ko") or slug,
        "name_ko": name.get("ko") or name.get("en") or slug,
        "years_of_experience": row.get("years_of_experience") or 5,
        "primary_specialty": row.get("primary_specialty") or "general",
        "languages": row.get("languages") or [],
        "bio_short_en": bio_short.get("en"),
        "bio_short_ko": bio_short.get("ko"),
    }


def select_persona(
    personas: list[dict],
    locale: str,
    category: str,
    attempt: int = 1,
    assigned_in_batch: Optional[dict] = None,
    rng: Optional[random.Random] = None,
) -> Optional[dict]:
    """Pick one persona row for a keyword, or None when nobody qualifies.

    Attempt 1 is a strict round robin: among locale speakers (preferring a
    primary_specialty match) the persona with the fewest effective posts
    wins. Later attempts shuffle the candidates instead, and from
    PERSONA_FALLBACK_ATTEMPT on English speakers, then anyone, are accepted.
    """
    assigned_in_batch = assigned_in_batch or {}
    rng = rng or random.Random()

    matching = [p for p in personas if _speaks(p, locale)]
    if not matching and attempt >= config.PERSONA_FALLBACK_ATTEMPT:
        matching = [p for p in personas if _speaks(p, "en")] or list(personas)
    if not matching:
        return None

    candidates = [
        {**p, "effective_posts": (p.get("post_count") or 0) + assigned_in_batch.get(p.get("id"), 0)}
        for p in matching
    ]
    specialty_matched = [p for p in candidates if p.get("primary_specialty") == category]
    if specialty_matched:
        candidates = specialty_matched

    if attempt > 1:
        rng.shuffle(candidates)
    else:
        candidates.sort(key=lambda p: p["effective_posts"])
    return candidates[0]


def fetch_author_persona(
    store,
    locale: str,
    category: str,
    request_id: str = "",
    assigned_in_batch: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> tuple[Optional[str], Optional[dict]]:
    """Select an author persona with up to MAX_PERSONA_RETRIES attempts.

    Returns (persona_id, author_data), or (None, None) after the last attempt.
    """
    tag = f"[{request_id}] " if request_id else ""
    max_attempts = config.MAX_PERSONA_RETRIES

    for attempt in range(1, max_attempts + 1):
        print(f"  -> {tag}Author persona fetch attempt {attempt}/{max_attempts}...")
        try:
            personas = store.fetch_personas_with_post_counts()
        except StoreError as e:
            personas = None
            print(f"  Warning: {tag}error fetching personas (attempt {attempt}): {e}")

        if personas is not None:
            print(f"  -> {tag}Found {len(personas)} active personas")
            selected = select_persona(
                personas, locale, category,
                attempt=attempt, assigned_in_batch=assigned_in_batch, rng=rng,
            )
            if selected:
                author = normalize_persona(selected)
                print(f"  OK {tag}Author selected: {author['slug']} (id: {author['id']})")
                return author["id"], author
            if not personas:
                print(f"  Warning: {tag}no active personas found in database")
            else:
                available = sorted({
                    lang.get("code") for p in personas for lang in p.get("languages") or []
                    if isinstance(lang, dict) and lang.get("code")
                })
                print(
                    f"  Warning: {tag}no persona speaks '{locale}' "
                    f"(available: {', '.join(available) or 'none'})"
                )

        if attempt < max_attempts:
            sleep(config.PERSONA_RETRY_DELAY * attempt)

    print(f"  ERROR {tag}Failed to fetch author persona after {max_attempts} attempts")
    return None, None


def load_preassigned_persona(store, persona_id: str) -> Optional[dict]:
    """Load a persona chosen in advance (content_keywords.author_persona_id)."""
    row = store.get_persona(persona_id)
    if not row:
        return None
    return normalize_persona(row)


# ── Writer persona for prompts ────────────────────────────────────────────


def _seeded_random(seed: int) -> Callable[[], float]:
    state = seed

    def next_value() -> float:
        nonlocal state
        state = (state * 9301 + 49297) % 233280
        return state / 233280

    return next_value


def keyword_seed(keyword: str) -> int:
    return sum(ord(ch) for ch in keyword)


def generate_writer_persona(category: str = "general", seed: Optional[int] = None) -> dict:
    """Generate an interpreter persona; the same seed always yields the same persona."""
    rand = _seeded_random(seed) if seed is not None else random.random

    family, given, name_en = KOREAN_NAMES[int(rand() * len(KOREAN_NAMES))]
    years = 5 + int(rand() * 16)

    specialty_count = 1 if rand() < 0.6 else (2 if rand() < 0.9 else 3)
    spec_keys = list(SPECIALTIES)
    if category != "general" and category in SPECIALTIES:
        specialties = [SPECIALTIES[category][1]]
    else:
        specialties = [SPECIALTIES[spec_keys[int(rand() * len(spec_keys))]][1]]
    while len(specialties) < specialty_count:
        spec = SPECIALTIES[spec_keys[int(rand() * len(spec_keys))]][1]
        if spec not in specialties:
            specialties.append(spec)

    languages = ["Korean", *LANGUAGE_COMBINATIONS[int(rand() * len(LANGUAGE_COMBINATIONS))]]

    cert_count = 2 + int(rand() * 3)
    certifications = sorted(CERTIFICATIONS, key=lambda _: rand())[:cert_count]

    tone = TONES[int(rand() * len(TONES))]
    persona = {
        "name": f"{family}{given}",
        "name_en": name_en,
        "years_of_experience": years,
        "specialties": specialties,
        "languages": languages,
        "certifications": certifications,
        "writing_style": {
            "tone": tone,
            "perspective": "first-person",
            "expertise_level": "intermediate" if years < 8 else "expert",
        },
    }
    persona["bio"] = _bio(persona["name"], persona, "ko")
    persona["bio_en"] = _bio(name_en, persona, "en")
    return persona


def _bio(name: str, persona: dict, locale: str) -> str:
    years = persona["years_of_experience"]
    specialties = ", ".join(persona["specialties"])
    languages = persona["languages"]
    first_cert = persona["certifications"][0]
    if locale == "ko":
        return (
            f"안녕하세요, {name}입니다. {years}년간 한국 의료 관광 통역사로 활동하며 "
            f"{specialties} 분야를 전문으로 다루고 있습니다. {', '.join(languages[:3])} 등 "
            f"{len(languages)}개 언어를 구사하며, {first_cert} 등의 자격을 보유하고 있습니다."
        )
    return (
        f"Hello, I'm {name}. With {years} years of experience as a medical tourism "
        f"interpreter in South Korea, I specialize in {specialties}. I speak "
        f"{', '.join(languages[:3])} ({len(languages)} languages total) and hold "
        f"certifications including {first_cert}."
    )


def build_writer_persona(author: Optional[dict], keyword: str, category: str = "general") -> dict:
    """Persona used in prompts: the DB author when given, else one derived from the keyword."""
    persona = generate_writer_persona(category, seed=keyword_seed(keyword))
    if not author:
        return persona

    specialty = SPECIALTIES.get(author.get("primary_specialty") or "general", SPECIALTIES["general"])[1]
    language_names = []
    for lang in author.get("languages") or []:
        name = LANGUAGE_NAMES.get(lang.get("code", ""), lang.get("code", ""))
        if name and name not in language_names:
            language_names.append(name)

    persona.update({
        "name": author.get("name_ko") or persona["name"],
        "name_en": author.get("name_en") or persona["name_en"],
        "years_of_experience": author.get("years_of_experience") or persona["years_of_experience"],
        "specialties": [specialty] + [s for s in persona["specialties"] if s != specialty][:1],
        "languages": language_names or persona["languages"],
    })
    persona["bio"] = author.get("bio_short_ko") or _bio(persona["name"], persona, "ko")
    persona["bio_en"] = author.get("bio_short_en") or _bio(persona["name_en"], persona, "en")
    return persona


def format_author_attribution(persona: dict, locale: str = "ko") -> str:
    years = persona["years_of_experience"]
    if locale == "ko":
        return f"작성자: {persona['name']} ({years}년 경력 의료통역사)"
    return f"Written by: {persona['name_en']} (Medical Interpreter, {years} years)"
