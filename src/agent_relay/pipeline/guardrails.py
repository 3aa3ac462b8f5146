"""Pre-flight policy checks that can block a question before retrieval."""

from __future__ import annotations

import logging
import re
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

logger = logging.getLogger(__name__)

Severity = Literal["low", "medium", "high", "critical"]
DEFAULT_GUARDRAILS = ("length", "safety", "pii", "profanity", "spam")


@dataclass(frozen=True)
class GuardrailContext:
    query: str
    session_id: str | None = None
    user_id: str | None = None
    persona: str | None = None


@dataclass(frozen=True)
class GuardrailResult:
    allowed: bool
    category: str
    reason: str | None = None
    severity: Severity | None = None
    guardrail: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class Guardrail(Protocol):
    name: str
    category: str

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult: ...


class LengthGuardrail:
    name = "length"
    category = "length"

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult:
        min_length = int(config.get("min_length", 3))
        max_length = int(config.get("max_length", 2000))
        length = len(context.query.strip())
        if length < min_length:
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("too_short_message")
                or f"Please provide a question that is at least {min_length} characters long.",
                severity="low",
            )
        if length > max_length:
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("too_long_message")
                or (
                    f"Please keep your question under {max_length} characters. "
                    "You can break it into multiple questions if needed."
                ),
                severity="low",
            )
        return GuardrailResult(allowed=True, category=self.category)


class SafetyGuardrail:
    """Blocks self-harm, violent and illegal-activity requests."""

    name = "safety"
    category = "safety"

    SELF_HARM = (
        re.compile(r"\b(suicide|self.?harm|cut myself|end it all|want to die|kill myself)\b", re.I),
        re.compile(r"\b(no reason to live|better off dead|not worth living)\b", re.I),
        re.compile(r"\b(hurt myself|self.?injure|self.?destruct)\b", re.I),
    )
    THREATS = (
        re.compile(r"\b(kill|murder|attack|violence|bomb|terror|threat)\b", re.I),
        re.compile(r"\b(injure|assault|maim|torture)\b", re.I),
        re.compile(r"\b(shoot|stab|poison|explode)\b", re.I),
    )
    ILLEGAL = (re.compile(r"\b(hack|crack|pirate|fraud|steal|scam|weapon)\b", re.I),)

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult:
        query = context.query
        if len(query) < 3:
            return GuardrailResult(allowed=True, category=self.category)

        if any(pattern.search(query) for pattern in self.SELF_HARM):
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("self_harm_message")
                or (
                    "I'm not equipped to help with self-harm concerns. Please reach out to a "
                    "mental health professional or crisis helpline for immediate support."
                ),
                severity="critical",
            )
        if any(pattern.search(query) for pattern in self.THREATS):
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("threat_message")
                or "I cannot assist with queries related to threats or violence.",
                severity="critical",
            )
        if config.get("check_illegal", True) and any(
            pattern.search(query) for pattern in self.ILLEGAL
        ):
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("illegal_message")
                or "I cannot assist with queries related to illegal activities.",
                severity="high",
            )
        return GuardrailResult(allowed=True, category=self.category)


class PIIGuardrail:
    """Blocks questions that carry personal identifiers."""

    name = "pii"
    category = "pii"

    PATTERNS: dict[str, re.Pattern[str]] = {
        "email address": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "phone number": re.compile(r"\b(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
        "Social Security Number": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
        "credit card number": re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b"),
        "IP address": re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"),
    }
    CONFIG_KEYS = {
        "email address": "check_email",
        "phone number": "check_phone",
        "Social Security Number": "check_ssn",
        "credit card number": "check_credit_card",
        "IP address": "check_ip",
    }

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult:
        detected: list[str] = []
        for label, pattern in self.PATTERNS.items():
            # IP addresses are only checked when explicitly enabled.
            enabled = config.get(self.CONFIG_KEYS[label], label != "IP address")
            if enabled and pattern.search(context.query):
                detected.append(label)

        if detected:
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("pii_message")
                or (
                    f"For your security, please do not share {', '.join(detected)} "
                    "in your messages."
                ),
                severity="high",
                metadata={"detected_types": detected},
            )
        return GuardrailResult(allowed=True, category=self.category)


class ProfanityGuardrail:
    name = "profanity"
    category = "profanity"

    PATTERNS = (
        re.compile(r"\b(fuck|shit|damn|bitch|asshole|piss|cunt|bastard)\b", re.I),
        re.compile(r"\b(hell|dammit)\b", re.I),
    )

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult:
        if any(pattern.search(context.query) for pattern in self.PATTERNS):
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("profanity_message")
                or (
                    "Please keep your language appropriate. "
                    "I'm here to help with product-related questions."
                ),
                severity="low",
            )
        return GuardrailResult(allowed=True, category=self.category)


class OffTopicGuardrail:
    """Blocks general-knowledge questions that carry no product context.

    Any product keyword lets the question through; otherwise a list of
    general-topic patterns and a "what is the <thing>" shape decide.
    """

    name = "off_topic"
    category = "off_topic"

    PRODUCT_KEYWORDS = (
        "plan", "pricing", "feature", "support", "account", "subscription",
        "billing", "export", "video", "upload", "download", "settings",
        "faq", "help", "issue", "bug", "error", "troubleshoot", "problem",
        "how to", "how do i", "can i", "documentation", "guide", "tutorial",
        "api", "integration", "webhook", "email", "notification", "alert",
        "refund", "password", "invoice",
    )  # fmt: skip
    PRODUCT_TERMS = (
        "product", "service", "app", "platform", "system", "tool", "software",
        "account", "plan", "subscription",
    )  # fmt: skip
    PATTERNS = (
        re.compile(
            r"\b(celebrity|actor|singer|musician|rapper|artist|famous|taylor swift|beyonce)\b"
        ),
        re.compile(r"\b(wikipedia|encyclopedia|define|definition of|what does|meaning of)\b"),
        re.compile(r"\b(weather|news|current events|stock market|sports|politics|election)\b"),
        re.compile(
            r"\b(history of|who invented|what country|capital of|physics|chemistry|biology)\b"
        ),
        re.compile(r"\b(movie|film|tv show|television|netflix|disney|marvel|star wars)\b"),
        re.compile(r"\b(who is|tell me about)\b"),
    )
    QUESTION = re.compile(
        r"^(what|who|where|when|why|how)\s+(is|are|was|were|does|do|did|can|could|should|will"
        r"|would)\s+"
    )
    ENTITY = re.compile(r"\b(?:the|a|an)\s+([a-z]+(?:\s+[a-z]+){0,2})")
    MESSAGE = (
        "I can only answer questions related to our product, support documentation, "
        "pricing, and policies. I don't have information about general topics, "
        "celebrities, or unrelated subjects."
    )

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult:
        query = context.query.lower().strip()
        keywords = config.get("product_keywords", self.PRODUCT_KEYWORDS)
        if any(keyword.lower() in query for keyword in keywords):
            return GuardrailResult(allowed=True, category=self.category)

        off_topic = any(pattern.search(query) for pattern in self.PATTERNS)
        if not off_topic and self.QUESTION.match(query):
            entity = self.ENTITY.search(query)
            terms = config.get("product_terms", self.PRODUCT_TERMS)
            off_topic = entity is not None and not any(
                term in entity.group(1) for term in terms
            )
        if off_topic:
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=config.get("off_topic_message") or self.MESSAGE,
                severity="medium",
            )
        return GuardrailResult(allowed=True, category=self.category)


class SpamGuardrail:
    """Blocks throwaway input and questions repeated too often in one session.

    Repeats are counted per session inside a sliding window. At most
    ``max_sessions`` sessions are tracked; the least recently active one is
    dropped first.
    """

    name = "spam"
    category = "spam"

    REPEATED_CHARACTER = re.compile(r"(.)\1{4,}")

    def __init__(
        self,
        *,
        max_sessions: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_sessions = max_sessions
        self.clock = clock
        self._recent: OrderedDict[str, list[tuple[str, float]]] = OrderedDict()

    def check(self, context: GuardrailContext, config: dict[str, Any]) -> GuardrailResult:
        query = context.query.strip()
        message = config.get("spam_message")
        min_length = int(config.get("min_length", 10))
        if len(query) < min_length and len(query.split()) < 3:
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=message or "Please provide a more detailed question.",
                severity="low",
            )
        if self.REPEATED_CHARACTER.search(query):
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=message or "Please provide a meaningful question.",
                severity="low",
            )

        max_repeats = int(config.get("max_repeats", 3))
        window_s = float(config.get("time_window_s", 60.0))
        now = self.clock()
        session_id = context.session_id or "anonymous"
        normalized = query.lower()

        recent = [
            (text, seen_at)
            for text, seen_at in self._recent.pop(session_id, [])
            if now - seen_at < window_s
        ]
        repeats = sum(1 for text, _ in recent if text == normalized)
        if repeats < max_repeats:
            recent.append((normalized, now))
        self._recent[session_id] = recent
        while len(self._recent) > self.max_sessions:
            self._recent.popitem(last=False)

        if repeats >= max_repeats:
            return GuardrailResult(
                allowed=False,
                category=self.category,
                reason=message
                or (
                    "You've asked this question multiple times. "
                    "Please wait a moment before trying again."
                ),
                severity="medium",
                metadata={"repeats": repeats},
            )
        return GuardrailResult(allowed=True, category=self.category)

    def tracked_sessions(self) -> int:
        return len(self._recent)


@dataclass
class PersonaGuardrails:
    enabled: list[str]
    overrides: dict[str, dict[str, Any]] = field(default_factory=dict)


class GuardrailRegistry:
    """Named guardrails plus the subset (and per-guardrail config) each persona uses."""

    def __init__(self, guardrails: list[Guardrail] | None = None) -> None:
        self._guardrails: dict[str, Guardrail] = {}
        self._personas: dict[str, PersonaGuardrails] = {}
        for guardrail in guardrails or []:
            self.register(guardrail)

    def register(self, guardrail: Guardrail) -> None:
        if guardrail.name in self._guardrails:
            logger.warning("guardrails event=overwrite name=%s", guardrail.name)
        self._guardrails[guardrail.name] = guardrail

    def unregister(self, name: str) -> bool:
        return self._guardrails.pop(name, None) is not None

    def names(self) -> list[str]:
        return sorted(self._guardrails)

    def configure_persona(
        self,
        persona: str,
        enabled: list[str],
        overrides: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        unknown = [name for name in enabled if name not in self._guardrails]
        if unknown:
            logger.warning(
                "guardrails event=unknown_names persona=%s names=%s", persona, ",".join(unknown)
            )
        self._personas[persona.lower()] = PersonaGuardrails(
            enabled=[name for name in enabled if name in self._guardrails],
            overrides=dict(overrides or {}),
        )

    def check(self, context: GuardrailContext, persona: str | None = None) -> GuardrailResult:
        """Run the persona's guardrails in order; the first block wins.

        Unknown personas use the ``default`` configuration. A guardrail that
        raises is logged and skipped.
        """
        key = (persona or "default").lower()
        config = self._personas.get(key, self._personas.get("default"))
        enabled = config.enabled if config is not None else list(DEFAULT_GUARDRAILS)
        overrides = config.overrides if config is not None else {}

        for name in enabled:
            guardrail = self._guardrails.get(name)
            if guardrail is None:
                continue
            try:
                result = guardrail.check(context, overrides.get(name, {}))
            except Exception:  # noqa: BLE001
                logger.exception("guardrails event=check_error name=%s", name)
                continue
            if not result.allowed:
                logger.warning(
                    "guardrails event=blocked name=%s category=%s severity=%s session_id=%s",
                    name,
                    result.category,
                    result.severity,
                    context.session_id,
                )
                return GuardrailResult(
                    allowed=False,
                    category=result.category,
                    reason=result.reason,
                    severity=result.severity,
                    guardrail=name,
                    metadata=result.metadata,
                )
        return GuardrailResult(allowed=True, category="none")


# persona -> (enabled guardrails in order, per-guardrail config)
PERSONA_PRESETS: dict[str, tuple[list[str], dict[str, dict[str, Any]]]] = {
    "default": (
        list(DEFAULT_GUARDRAILS),
        {
            "length": {"min_length": 3, "max_length": 2000},
            "pii": {"check_ip": False},
            "spam": {"max_repeats": 3},
        },
    ),
    "greeter": (
        ["length", "safety", "off_topic", "profanity"],
        {"length": {"min_length": 1, "max_length": 2000}},
    ),
    "moderator": (
        ["length", "safety", "off_topic", "pii", "profanity", "spam"],
        {
            "length": {"min_length": 5, "max_length": 1000},
            "pii": {"check_ip": True},
            "spam": {"max_repeats": 2, "time_window_s": 30.0},
        },
    ),
    "escalator": (
        ["length", "safety", "pii", "spam"],
        {
            "length": {"min_length": 3, "max_length": 5000},
            "spam": {"max_repeats": 5},
        },
    ),
    "strict": (
        ["length", "safety", "off_topic", "pii", "profanity", "spam"],
        {
            "length": {"min_length": 5, "max_length": 1000},
            "pii": {"check_ip": True},
            "spam": {"max_repeats": 2, "time_window_s": 30.0},
        },
    ),
    "lenient": (["safety", "off_topic"], {}),
    "technical": (["length", "safety", "pii", "spam"], {}),
}


def build_default_guardrails() -> GuardrailRegistry:
    registry = GuardrailRegistry(
        [
            LengthGuardrail(),
            SafetyGuardrail(),
            OffTopicGuardrail(),
            PIIGuardrail(),
            ProfanityGuardrail(),
            SpamGuardrail(),
        ]
    )
    for persona, (enabled, overrides) in PERSONA_PRESETS.items():
        registry.configure_persona(persona, enabled, overrides)
    return registry
