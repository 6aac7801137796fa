"""Structural memory extraction from chat messages.

Turns a message into a candidate memory using structural parsing only,
with no LLM calls:
- user, channel and role mentions
- significant keywords (as topics)
- fact patterns ("I like X", "my favorite X is Y", ...)

Extraction is pure: no I/O, no shared mutable state, and it never raises
for bad input - a message that is not worth remembering yields None.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from loguru import logger

from hypermem.config.schema import ExtractionConfig
from hypermem.memory.models import ExtractedEntity, ExtractedMemory, HyperedgeRequest

# Stopwords to filter out from keyword extraction
STOPWORDS = frozenset({
    'a', 'an', 'the', 'and', 'or', 'but', 'if', 'because', 'as', 'what', 'which',
    'this', 'that', 'these', 'those', 'am', 'is', 'are', 'was', 'were', 'be',
    'been', 'being', 'have', 'has', 'had', 'having', 'do', 'does', 'did', 'doing',
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'me', 'him', 'her', 'us', 'them',
    'my', 'your', 'his', 'its', 'our', 'their', 'mine', 'yours', 'hers', 'ours',
    'theirs', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by', 'from', 'up',
    'about', 'into', 'through', 'during', 'before', 'after', 'above', 'below',
    'between', 'under', 'again', 'further', 'then', 'once', 'here', 'there', 'when',
    'where', 'why', 'how', 'all', 'each', 'few', 'more', 'most', 'other', 'some',
    'such', 'no', 'nor', 'not', 'only', 'own', 'same', 'so', 'than', 'too', 'very',
    'just', 'now', 'can', 'will', 'dont', 'should', 'im', 'youre', 'hes', 'shes',
    'theyre', 'ive', 'youve', 'weve', 'theyve', 'id', 'youd', 'hed',
    'shed', 'wed', 'theyd', 'ill', 'youll', 'hell', 'shell', 'well', 'theyll',
    'isnt', 'arent', 'wasnt', 'werent', 'hasnt', 'havent', 'hadnt',
    'doesnt', 'didnt', 'wont', 'wouldnt', 'shant', 'shouldnt', 'cant',
    'cannot', 'couldnt', 'mustnt', 'lets', 'thats', 'whos', 'whats', 'heres',
    'theres', 'whens', 'wheres', 'whys', 'hows',
})

# Channel kinds that never become location entities
PRIVATE_CHANNEL_KINDS = frozenset({"dm", "group_dm"})

# Continuations that make "I am X" too generic to be a fact
GENERIC_STATEMENT = re.compile(
    r"\b(?:going|doing|feeling|thinking|sure|ok|okay|here|back|ready)\b", re.IGNORECASE
)

_MENTION_MARKUP = re.compile(r"<@[!&]?\d+>")
_CHANNEL_MARKUP = re.compile(r"<#\d+>")
_URL = re.compile(r"https?://\S+")
_PUNCTUATION = re.compile(r"[^\w\s]")

SUMMARY_MAX_LENGTH = 80


@dataclass
class MentionedUser:
    id: str
    name: str


@dataclass
class MentionedChannel:
    id: str
    name: str
    kind: str = "text"  # "text", "voice", "thread", "dm", "group_dm", ...


@dataclass
class MentionedRole:
    id: str
    name: str


@dataclass
class IncomingMessage:
    """The parts of a chat message the extractor looks at."""
    author_id: str
    author_name: str
    text: str
    tenant_id: Optional[str]  # None for direct messages
    channel_id: str
    mentioned_users: list[MentionedUser] = field(default_factory=list)
    mentioned_channels: list[MentionedChannel] = field(default_factory=list)
    mentioned_roles: list[MentionedRole] = field(default_factory=list)
    message_id: Optional[str] = None


@dataclass(frozen=True)
class FactTemplate:
    summary: str
    importance: float
    edge_type: str = "fact"


def _likes(match: re.Match) -> Optional[FactTemplate]:
    return FactTemplate(f"User likes {match.group(1).strip()}", 0.7)


def _dislikes(match: re.Match) -> Optional[FactTemplate]:
    return FactTemplate(f"User dislikes {match.group(1).strip()}", 0.7)


def _is(match: re.Match) -> Optional[FactTemplate]:
    value = match.group(1).strip()
    if len(value) < 3 or GENERIC_STATEMENT.search(value):
        return None
    return FactTemplate(f"User is {value}", 0.5)


def _favorite(match: re.Match) -> Optional[FactTemplate]:
    return FactTemplate(f"User's favorite {match.group(1)} is {match.group(2).strip()}", 0.8)


def _remember(match: re.Match) -> Optional[FactTemplate]:
    return FactTemplate(f"User noted: {match.group(1).strip()}", 0.9)


# Checked in order; the first pattern whose builder returns a template wins.
FACT_PATTERNS: list[tuple[re.Pattern, Callable[[re.Match], Optional[FactTemplate]]]] = [
    (re.compile(r"\b(?:i am|im|i)\s+(?:really\s+)?(?:like|love|enjoy|enjoying|prefer)\s+(.+)", re.IGNORECASE), _likes),
    (re.compile(r"\b(?:i am|im|i)\s+(?:really\s+)?(?:hate|dislike|cant stand)\s+(.+)", re.IGNORECASE), _dislikes),
    (re.compile(r"\b(?:i am|im|i(?!\s+am\b))\s+(?:a\s+)?(.{3,40})\b", re.IGNORECASE), _is),
    (re.compile(r"\bmy\s+favorite\s+(\w+)\s+(?:is|:\s+)(.+)", re.IGNORECASE), _favorite),
    (re.compile(r"\b(?:remember|dont forget|note)\s+(?:that\s+)?(.+)", re.IGNORECASE), _remember),
]


def extract_keywords(text: str, limit: int = 5) -> list[str]:
    """
    Extract significant keywords from text.

    Args:
        text: Raw message text
        limit: Maximum number of keywords to return

    Returns:
        Unique lower-cased keywords in first-seen order
    """
    clean = _MENTION_MARKUP.sub("", text)
    clean = _CHANNEL_MARKUP.sub("", clean)
    clean = _URL.sub("", clean)
    clean = _PUNCTUATION.sub(" ", clean).lower()

    words = [w for w in clean.split() if len(w) >= 3 and w not in STOPWORDS]

    # dict preserves insertion order
    return list(dict.fromkeys(words))[:limit]


def match_fact(text: str) -> Optional[FactTemplate]:
    """Return the template of the first fact pattern that accepts the text."""
    for pattern, build in FACT_PATTERNS:
        match = pattern.search(text)
        if match:
            template = build(match)
            if template:
                return template
    return None


class StructuralExtractor:
    """
    Builds candidate memories from chat messages without an LLM.

    Holds only immutable settings, so one instance can be shared by every
    message handler.
    """

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()

    def extract(self, message: IncomingMessage) -> Optional[ExtractedMemory]:
        """
        Extract a memory from a message.

        Args:
            message: Incoming chat message

        Returns:
            ExtractedMemory, or None if the message is not worth remembering
        """
        if not message.tenant_id or not message.text:
            return None

        content = message.text.strip()
        if len(content) < self.config.min_length:
            return None

        entities = self._collect_entities(message, content)

        fact = match_fact(content)
        if fact:
            logger.debug(f"Fact pattern matched: {fact.summary}")
            return ExtractedMemory(
                summary=fact.summary,
                content=content,
                edge_type=fact.edge_type,
                importance=fact.importance,
                entities=entities,
            )

        has_other_participants = any(
            e.kind == "user" and e.external_id != message.author_id for e in entities
        )
        has_topics = any(e.kind == "topic" for e in entities)

        # Skip simple messages like "hi", "ok"
        if not (has_other_participants or has_topics or len(content) > 20):
            return None

        return ExtractedMemory(
            summary=generate_summary(message.author_name, entities),
            content=content,
            edge_type="observation",
            importance=calculate_importance(content, entities),
            entities=entities,
        )

    def create_memory_data(self, message: IncomingMessage) -> Optional[HyperedgeRequest]:
        """Extract a memory and wrap it as a store write request."""
        extracted = self.extract(message)
        if extracted is None:
            return None
        return HyperedgeRequest.from_extracted(
            extracted,
            channel_id=message.channel_id,
            source_message_id=message.message_id,
        )

    def _collect_entities(self, message: IncomingMessage, content: str) -> list[ExtractedEntity]:
        entities = [
            ExtractedEntity(
                kind="user",
                external_id=message.author_id,
                name=message.author_name,
                role="participant",
                weight=1.0,
            )
        ]

        seen_users = {message.author_id}
        for user in message.mentioned_users:
            if user.id in seen_users:
                continue
            seen_users.add(user.id)
            entities.append(ExtractedEntity(
                kind="user", external_id=user.id, name=user.name, role="participant", weight=0.9,
            ))

        for channel in message.mentioned_channels:
            if channel.kind in PRIVATE_CHANNEL_KINDS or not channel.name:
                continue
            entities.append(ExtractedEntity(
                kind="channel", external_id=channel.id, name=channel.name, role="location", weight=0.5,
            ))

        for role in message.mentioned_roles:
            entities.append(ExtractedEntity(
                kind="topic", external_id=role.id, name=role.name, role="topic", weight=0.6,
            ))

        for keyword in extract_keywords(content, limit=self.config.max_keywords):
            entities.append(ExtractedEntity(
                kind="topic", external_id=keyword.lower(), name=keyword, role="topic", weight=0.3,
            ))

        return entities


def generate_summary(author_name: str, entities: list[ExtractedEntity]) -> str:
    """Summary for an observation: who talked with whom, about what."""
    topics = [e.name for e in entities if e.kind == "topic"][:3]
    users = [e.name for e in entities if e.kind == "user" and e.name != author_name][:2]

    summary = author_name
    if users:
        summary += f" with {' and '.join(users)}"
    if topics:
        summary += f" about {', '.join(topics)}"

    if len(summary) > SUMMARY_MAX_LENGTH:
        summary = summary[:SUMMARY_MAX_LENGTH - 3] + "..."
    return summary


def calculate_importance(content: str, entities: list[ExtractedEntity]) -> float:
    """Importance of an observation in [0, 1]."""
    score = 0.3

    # Longer messages are more important
    if len(content) > 50:
        score += 0.1
    if len(content) > 100:
        score += 0.1

    user_count = sum(1 for e in entities if e.kind == "user")
    topic_count = sum(1 for e in entities if e.kind == "topic")
    score += min(user_count * 0.15, 0.3)
    score += min(topic_count * 0.05, 0.2)

    if "?" in content:
        score += 0.1
    if "!" in content:
        score += 0.05

    return max(0.0, min(score, 1.0))


_default_extractor = StructuralExtractor()


def extract_structural_memory(message: IncomingMessage) -> Optional[ExtractedMemory]:
    """
    Extract a memory from a message with default settings.

    This is the main entry point for extraction.
    """
    return _default_extractor.extract(message)


def create_memory_data(message: IncomingMessage) -> Optional[HyperedgeRequest]:
    """Extract a memory and wrap it as a store write request."""
    return _default_extractor.create_memory_data(message)
