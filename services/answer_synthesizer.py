"""Grounded answer generation with numbered citations"""
import json
import logging
import re
from typing import Dict, List, Optional, Sequence

from config import settings
from core.domain import (
    AnswerResult, ChatMessage, ChatRole, ChunkSearchResult, DiscoveredSource, DiscoveryResult
)
from core.exceptions import DiscoveryFailed, GenerationFailed
from core.interfaces import ILLMService
from utils.common import snippet, strip_code_fences

logger = logging.getLogger(settings.LOGGER_NAME)

# Matches "[Source 3]" and "[source:3]"
CITATION_PATTERN = re.compile(r'\[\s*source\s*[:\s]\s*(\d+)\s*\]', re.IGNORECASE)
# Whitespace left in front of punctuation once a marker is removed
_SPACE_BEFORE_PUNCT = re.compile(r'[ \t]+([.,;:!?])')

# Fixed lead-ins for answers that are not backed by retrieved passages
NOT_GROUNDED_NOTICE = "_Not based on your sources._"
NO_CONTENT_NOTICE = "_Your enabled sources don't contain information about this question._"

GROUNDED_SYSTEM_PROMPT = """You are an expert AI assistant that answers questions based ONLY on the provided source material.

**Your Task:**
1. Carefully read and analyze the retrieved source material below
2. Answer the user's question using ONLY information from these sources
3. Cite your sources using the format [Source N] where N is the source number
4. If the sources don't contain enough information to fully answer the question, state what is covered and what isn't
5. Use clear Markdown formatting (headings, lists, bold text, etc.)
6. Be concise but thorough

**CRITICAL RULES:**
- ONLY use information from the provided sources
- ALWAYS cite sources for factual claims using [Source N]
- If sources contradict each other, mention both perspectives with citations
- If the answer isn't in the sources, say so clearly
- Do NOT make up information or use external knowledge

**Retrieved Source Material:**
{context}"""

HISTORY_SECTION = """

**Previous Conversation (for continuity only, NOT a citable source):**
{history}"""

NO_CONTEXT_SYSTEM_PROMPT = (
    "You are an AI assistant. The user has enabled {count} source(s), but no relevant content "
    "was found in them for their query. Politely inform them that their sources don't contain "
    "information about this topic. Do not answer from general knowledge and do not include "
    "citation markers."
)

GENERAL_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. No source documents are selected, so your answer is not "
    "grounded in the user's sources; say so briefly. Format your responses using Markdown for readability."
)

SUGGESTION_SYSTEM_PROMPT = """Generate three insightful follow-up questions a user might ask based on their context. The questions should be:
- Specific and actionable
- Build on the existing conversation
- Help the user explore the topic deeper

Respond in JSON format:
{
  "suggestions": ["Question 1?", "Question 2?", "Question 3?"]
}"""

DISCOVER_SYSTEM_PROMPT = """You are an expert research assistant. Find relevant, high-quality sources (articles, web pages, videos) on the given topic.

Provide:
1. A concise one-paragraph summary of the key findings (use markdown emphasis, like *this*)
2. A list of 5-7 excellent sources, each with a title, a direct URL and a one-sentence description

Ensure all URLs are valid and directly accessible."""

DISCOVER_USER_PROMPT = """Research topic: "{topic}"

Respond in the following JSON format:
{{
  "summary": "One paragraph summary with *markdown* emphasis",
  "sources": [
    {{"title": "Source title", "link": "https://...", "description": "Brief one-sentence description"}}
  ]
}}"""

STARTER_SUGGESTIONS = [
    "Summarize the key points from my sources",
    "What are the main themes discussed?",
    "Find connections between different sources",
]

DEFAULT_SUGGESTIONS = [
    "Can you explain the main concept in simpler terms?",
    "What are the key takeaways from these sources?",
    "How does this information connect to related topics?",
]


def format_retrieved_context(results: Sequence[ChunkSearchResult]) -> str:
    """Numbered context block; the 1-based number is the citation key."""
    return '\n\n'.join(
        f"[Source {index}] (Relevance: {result.score * 100:.1f}%)\n"
        f"Document: {result.chunk.source_name}\n"
        f"Content: {result.chunk.content}\n"
        f"---"
        for index, result in enumerate(results, start=1)
    )


def format_history(history: Optional[Sequence[ChatMessage]], limit: int) -> str:
    if not history or limit <= 0:
        return ""
    lines = []
    for message in list(history)[-limit:]:
        speaker = "User" if message.role == ChatRole.USER else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return '\n'.join(lines)


def extract_citation_indices(text: str, max_index: Optional[int] = None) -> List[int]:
    """Sorted, de-duplicated citation numbers referenced in an answer."""
    indices = {int(match) for match in CITATION_PATTERN.findall(text)}
    if max_index is not None:
        indices = {i for i in indices if 1 <= i <= max_index}
    return sorted(indices)


def strip_citation_markers(text: str) -> str:
    cleaned = CITATION_PATTERN.sub('', text)
    cleaned = _SPACE_BEFORE_PUNCT.sub(r'\1', cleaned)
    return re.sub(r'[ \t]{2,}', ' ', cleaned).strip()


def mark_ungrounded(text: str, notice: str) -> str:
    """Strip citation markers and put a fixed notice in front of the answer."""
    body = strip_citation_markers(text)
    return f"{notice}\n\n{body}" if body else notice


DISCOVERED_FIELDS = ("title", "link", "description")


def parse_discovery(text: str) -> DiscoveryResult:
    """
    Parse a `{summary, sources}` reply, optionally wrapped in a code fence.

    Raises:
        DiscoveryFailed: the reply does not have that shape
    """
    try:
        parsed = json.loads(strip_code_fences(text))
    except ValueError as e:
        raise DiscoveryFailed(f"Discovery reply is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise DiscoveryFailed("Discovery reply is not a JSON object")
    summary = parsed.get("summary")
    items = parsed.get("sources")
    if not isinstance(summary, str) or not summary.strip() or not isinstance(items, list):
        raise DiscoveryFailed("Discovery reply is missing 'summary' or 'sources'")

    sources = []
    for item in items:
        fields = [item.get(key) if isinstance(item, dict) else None for key in DISCOVERED_FIELDS]
        if not all(isinstance(value, str) for value in fields):
            raise DiscoveryFailed(f"Malformed discovered source: {item!r}")
        sources.append(DiscoveredSource(*fields))
    return DiscoveryResult(summary=summary.strip(), sources=sources)


class AnswerSynthesizer:
    """
    Turns retrieved passages into a grounded, cited answer.

    Grounded answers run at `answer_temperature`; suggestions use the warmer
    `suggestion_temperature` on the same backend.
    """

    def __init__(
        self,
        llm_service: ILLMService,
        answer_temperature: float = settings.ANSWER_TEMPERATURE,
        general_temperature: float = settings.GENERAL_TEMPERATURE,
        suggestion_temperature: float = settings.SUGGESTION_TEMPERATURE,
        history_limit: int = settings.CHAT_CONTEXT_LIMIT,
    ):
        self.llm_service = llm_service
        self.answer_temperature = answer_temperature
        self.general_temperature = general_temperature
        self.suggestion_temperature = suggestion_temperature
        self.history_limit = history_limit

    def build_grounded_messages(
        self,
        query: str,
        results: Sequence[ChunkSearchResult],
        history: Optional[Sequence[ChatMessage]] = None,
    ) -> List[Dict[str, str]]:
        system_prompt = GROUNDED_SYSTEM_PROMPT.format(context=format_retrieved_context(results))
        history_text = format_history(history, self.history_limit)
        if history_text:
            system_prompt += HISTORY_SECTION.format(history=history_text)

        return [
            {"role": ChatRole.SYSTEM.value, "content": system_prompt},
            {"role": ChatRole.USER.value, "content": f"**Question:** {query}"},
        ]

    async def synthesize(
        self,
        query: str,
        retrieved_results: Sequence[ChunkSearchResult],
        conversation_history: Optional[Sequence[ChatMessage]] = None,
        enabled_source_count: int = 1,
    ) -> AnswerResult:
        """
        Generate an answer from retrieved passages.

        An empty result set is a legitimate outcome: the model is told to
        report that the sources hold nothing relevant, the answer opens with
        NO_CONTENT_NOTICE, and no citations are returned.

        Raises:
            GenerationFailed: passed through unchanged, never retried
        """
        results = list(retrieved_results)

        if not results:
            messages = [
                {"role": ChatRole.SYSTEM.value,
                 "content": NO_CONTEXT_SYSTEM_PROMPT.format(count=enabled_source_count)},
                {"role": ChatRole.USER.value, "content": query},
            ]
            text = await self.llm_service.generate(messages, temperature=self.answer_temperature)
            return AnswerResult(answer_text=mark_ungrounded(text, NO_CONTENT_NOTICE), grounded=False)

        messages = self.build_grounded_messages(query, results, conversation_history)
        logger.info(f"[RAG] Generating grounded answer from {len(results)} passages...")
        text = await self.llm_service.generate(messages, temperature=self.answer_temperature)
        return AnswerResult(answer_text=text, cited_results=results, grounded=True)

    async def answer_without_sources(
        self,
        query: str,
        conversation_history: Optional[Sequence[ChatMessage]] = None,
    ) -> AnswerResult:
        """General assistant answer used when no sources are enabled. Opens with NOT_GROUNDED_NOTICE."""
        messages = [{"role": ChatRole.SYSTEM.value, "content": GENERAL_SYSTEM_PROMPT}]
        if conversation_history and self.history_limit > 0:
            messages.extend(m.to_dict() for m in list(conversation_history)[-self.history_limit:])
        messages.append({"role": ChatRole.USER.value, "content": query})

        text = await self.llm_service.generate(messages, temperature=self.general_temperature)
        return AnswerResult(answer_text=mark_ungrounded(text, NOT_GROUNDED_NOTICE), grounded=False)

    async def generate_suggestions(
        self,
        enabled_source_count: int,
        conversation_history: Optional[Sequence[ChatMessage]] = None,
    ) -> List[str]:
        """Three follow-up questions; falls back to defaults on any failure."""
        history = list(conversation_history or [])
        if enabled_source_count == 0 and not history:
            return list(STARTER_SUGGESTIONS)

        context = ''
        if history:
            context += 'Recent conversation:\n'
            context += '\n'.join(
                f"{m.role.value}: {snippet(m.content, 200)}" for m in history[-3:]
            )
        if enabled_source_count > 0:
            context += f"\n\nUser has {enabled_source_count} source document(s) loaded."

        messages = [
            {"role": ChatRole.SYSTEM.value, "content": SUGGESTION_SYSTEM_PROMPT},
            {"role": ChatRole.USER.value, "content": context.strip()},
        ]

        try:
            text = await self.llm_service.generate(messages, temperature=self.suggestion_temperature)
            parsed = json.loads(strip_code_fences(text))
        except (GenerationFailed, ValueError) as e:
            logger.warning(f"[RAG] Suggestion generation failed, using defaults: {e}")
            return list(DEFAULT_SUGGESTIONS)

        suggestions = parsed.get("suggestions") if isinstance(parsed, dict) else None
        if isinstance(suggestions, list):
            cleaned = [str(s).strip() for s in suggestions if str(s).strip()]
            if cleaned:
                return cleaned[:3]
        return list(DEFAULT_SUGGESTIONS)

    async def discover_sources(self, topic: str) -> DiscoveryResult:
        """
        Ask the backend for a topic summary and external sources worth reading.

        Runs at `general_temperature`. Backend errors pass through unchanged;
        a reply that cannot be parsed raises DiscoveryFailed.
        """
        messages = [
            {"role": ChatRole.SYSTEM.value, "content": DISCOVER_SYSTEM_PROMPT},
            {"role": ChatRole.USER.value, "content": DISCOVER_USER_PROMPT.format(topic=topic)},
        ]
        text = await self.llm_service.generate(messages, temperature=self.general_temperature)

        try:
            result = parse_discovery(text)
        except DiscoveryFailed as e:
            logger.error(f"[RAG] Source discovery for '{snippet(topic, 80)}' failed: {e}")
            raise

        logger.info(f"[RAG] Discovered {len(result.sources)} sources for '{snippet(topic, 80)}'")
        return result
