"""Chunk Google's SEO guide (markdown) and index it for the retrieval step.

The guide is split on "## " sections and "### " subsections, then by size
with a one-sentence overlap. Each chunk is stored with source
"google-seo-guide" and the section, a 1-10 priority, a chunk type and the
SEO terms it mentions, which is what the retrieval step reads back.
"""

from __future__ import annotations

import math
import re
import time
from typing import Callable, Optional

from carekorea import config
from carekorea.pipeline.generator import estimate_tokens
from carekorea.pipeline.rag import create_embedding, get_openai_client, get_vector_index

SOURCE = "google-seo-guide"
CHUNK_TOKENS = 500
OVERLAP_SENTENCES = 1
INDEX_BATCH_SIZE = 10

# (priority, section title terms); first match wins, anything else is 4
SECTION_PRIORITIES = [
    (10, ("e-e-a-t", "콘텐츠 품질", "ymyl", "aeo", "검색 결과")),
    (8, ("제목", "title", "메타", "meta", "구조화", "이미지", "콘텐츠 작성")),
    (6, ("url", "사이트 구성", "링크", "모바일")),
]
DEFAULT_PRIORITY = 4

SEO_TERMS = [
    "seo", "title", "meta", "description", "keywords", "content", "quality",
    "e-e-a-t", "ymyl", "aeo", "schema", "structured data", "image", "alt",
    "url", "link", "internal", "external", "mobile", "speed", "performance",
    "제목", "메타", "설명", "콘텐츠", "품질", "이미지", "링크", "모바일", "속도",
]


def determine_priority(section_title: str) -> int:
    lower = section_title.lower()
    for priority, terms in SECTION_PRIORITIES:
        if any(term in lower for term in terms):
            return priority
    return DEFAULT_PRIORITY


def determine_type(text: str) -> str:
    lower = text.lower()
    if "예시:" in lower or "example:" in lower or "```" in text:
        return "example"
    if "체크리스트" in lower or "checklist" in lower or re.match(r"[-•✓]\s", text):
        return "checklist"
    if "이란" in lower or "정의" in lower or "definition" in lower:
        return "definition"
    return "guideline"


def extract_keywords(text: str) -> list[str]:
    lower = text.lower()
    return [term for term in SEO_TERMS if term in lower]


def split_by_size(text: str, max_tokens: int = CHUNK_TOKENS, overlap: int = OVERLAP_SENTENCES) -> list[str]:
    """Group sentences into chunks of at most max_tokens; each chunk repeats
    the last `overlap` sentences of the previous one."""
    sentences = [s for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s.strip()]
    chunks, current, tokens = [], [], 0

    for sentence in sentences:
        sentence_tokens = estimate_tokens(sentence)
        if current and tokens + sentence_tokens > max_tokens:
            chunks.append(" ".join(current))
            current = current[-overlap:] if overlap else []
            tokens = sum(estimate_tokens(s) for s in current)
        current.append(sentence)
        tokens += sentence_tokens

    if current:
        chunks.append(" ".join(current))
    return chunks


def _heading_and_body(block: str) -> tuple[str, str]:
    heading, _, body = block.partition("\n")
    return heading.strip(), body.strip()


def split_into_chunks(content: str, max_tokens: int = CHUNK_TOKENS) -> list[dict]:
    """Chunks as {id, text, metadata}, ids seo-guide-0, seo-guide-1, ..."""
    chunks = []
    for section in re.split(r"^## ", content, flags=re.MULTILINE):
        if not section.strip():
            continue
        section_title, section_body = _heading_and_body(section)
        priority = determine_priority(section_title)

        subsections = [s for s in re.split(r"^### ", section_body, flags=re.MULTILINE) if s.strip()]
        if len(subsections) > 1:
            parts = [_heading_and_body(s) for s in subsections]
        else:
            parts = [(None, section_body)]

        for subsection, body in parts:
            for text in split_by_size(body, max_tokens):
                metadata = {
                    "source": SOURCE,
                    "section": section_title,
                    "priority": priority,
                    "keywords": extract_keywords(text),
                    "type": determine_type(text),
                }
                if subsection:
                    metadata["subsection"] = subsection
                chunks.append({"id": f"seo-guide-{len(chunks)}", "text": text, "metadata": metadata})
    return chunks


def index_chunks(
    chunks: list[dict],
    embedder=None,
    index=None,
    batch_size: int = INDEX_BATCH_SIZE,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Embed and upsert chunks in batches; the chunk text is kept in the metadata.

    Returns the number of chunks indexed.
    """
    embedder = embedder or get_openai_client()
    index = index or get_vector_index()
    delay = config.SEO_GUIDE_BATCH_DELAY if delay is None else delay
    total_batches = math.ceil(len(chunks) / batch_size)

    for batch_number, start in enumerate(range(0, len(chunks), batch_size), 1):
        batch = chunks[start:start + batch_size]
        print(f"  -> Batch {batch_number}/{total_batches}...")
        vectors = []
        for chunk in batch:
            embedding = create_embedding(chunk["text"], client=embedder)
            vectors.append((chunk["id"], embedding, {**chunk["metadata"], "text": chunk["text"]}))
            print(f"     {chunk['id']}: {chunk['metadata']['section'][:40]}")
        index.upsert(vectors=vectors)
        print(f"  OK Batch {batch_number} uploaded")
        if batch_number < total_batches:
            sleep(delay)

    return len(chunks)
