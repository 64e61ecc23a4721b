"""
Prompts for fact extraction, output recovery, quiz and related-fact generation.

Each builder returns a chat message list ready for the completion gateway;
the matching CompletionOptions sit next to it. Prompts are kept short: the
target models are sub-1B parameter local models with small context windows.
"""
from __future__ import annotations

from .gateway import CompletionOptions, Message

# =============================================================================
# System Prompt (Applied to All Generation)
# =============================================================================

SYSTEM_PROMPT = """You turn source text into short, self-contained facts for a learning feed.

RULES:
1. ONLY use information written in the source text. Never add outside knowledge.
2. ONE fact per item, readable on its own without the surrounding text.
3. Every fact is a complete sentence of at most 200 characters.
4. No opinions, no questions, no references like "this text" or "the author".
5. Reply with JSON only when JSON is requested."""


# =============================================================================
# Fact Extraction
# =============================================================================

FACT_EXTRACTION_OPTIONS = CompletionOptions(
    temperature=0.3,
    max_tokens=1024,
    top_p=0.9,
)

FACT_EXTRACTION_PROMPT = """Extract concise, interesting facts about "{topic}" from the text below.

TEXT:
{chunk}

Return a JSON array where each element has the form:
{{"content": "One fact, at most 200 characters."}}

Reply with the JSON array only."""


def build_fact_messages(chunk: str, topic: str) -> list[Message]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": FACT_EXTRACTION_PROMPT.format(topic=topic, chunk=chunk)},
    ]


# =============================================================================
# Recovery (reformat the model's own malformed reply)
# =============================================================================

REFORMAT_OPTIONS = CompletionOptions(
    temperature=0.0,
    max_tokens=1024,
)

REFORMAT_PROMPT = """The reply below was supposed to be a JSON array of facts but could not be parsed.

REPLY:
{raw}

Rewrite it as a valid JSON array of objects of the form {{"content": "..."}}.
Keep the facts, drop everything else, keep each fact under 200 characters.
Reply with the JSON array only."""


def build_reformat_messages(raw: str) -> list[Message]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": REFORMAT_PROMPT.format(raw=raw)},
    ]


# =============================================================================
# Quiz Generation
# =============================================================================

QUIZ_OPTIONS = CompletionOptions(
    temperature=0.35,
    max_tokens=768,
    stop_sequences=("```",),
)

QUIZ_PROMPT = """You are creating quiz questions for the topic "{topic}". Write one multiple-choice question per numbered fact. Each question must test the fact directly.

FACTS:
{facts}

Return a JSON array where each element has the form:
{{"question": "Question text?", "options": ["Option A", "Option B", "Option C", "Option D"], "correct_answer": 0}}

RULES:
- Provide exactly {count} quiz objects in the same order as the facts.
- Use double quotes around all keys and string values.
- Each options array contains exactly four concise answers (under 80 characters).
- correct_answer is the zero-based index of the correct option.
- Reply with JSON only."""


def build_quiz_messages(topic: str, fact_contents: list[str]) -> list[Message]:
    numbered = "\n".join(f"{i}. {content}" for i, content in enumerate(fact_contents, 1))
    prompt = QUIZ_PROMPT.format(topic=topic, facts=numbered, count=len(fact_contents))
    return [{"role": "user", "content": prompt}]


# =============================================================================
# Related Facts
# =============================================================================

RELATED_FACTS_OPTIONS = CompletionOptions(
    temperature=0.7,
    max_tokens=512,
)

RELATED_FACTS_PROMPT = """Based on this fact about {topic}:
"{fact}"

Write {count} related, interesting facts about {topic}. Each fact is at most 200 characters. Put each fact on its own line with no numbering."""


def build_related_messages(topic: str, fact: str, count: int) -> list[Message]:
    prompt = RELATED_FACTS_PROMPT.format(topic=topic, fact=fact, count=count)
    return [{"role": "user", "content": prompt}]
