from agent_relay.pipeline.answer import AnswerPipeline, AnswerResult, Citation
from agent_relay.pipeline.background import BackgroundTasks
from agent_relay.pipeline.dedupe import RequestDeduplicator, dedupe_key
from agent_relay.pipeline.errors import AnswerTimeoutError, DedupeTimeoutError, PipelineError
from agent_relay.pipeline.escalation import Escalator
from agent_relay.pipeline.guardrails import (
    PERSONA_PRESETS,
    GuardrailContext,
    GuardrailRegistry,
    GuardrailResult,
    LengthGuardrail,
    OffTopicGuardrail,
    PIIGuardrail,
    ProfanityGuardrail,
    SafetyGuardrail,
    SpamGuardrail,
    build_default_guardrails,
)

__all__ = [
    "AnswerPipeline",
    "AnswerResult",
    "AnswerTimeoutError",
    "BackgroundTasks",
    "Citation",
    "DedupeTimeoutError",
    "Escalator",
    "GuardrailContext",
    "GuardrailRegistry",
    "GuardrailResult",
    "LengthGuardrail",
    "OffTopicGuardrail",
    "PERSONA_PRESETS",
    "PIIGuardrail",
    "ProfanityGuardrail",
    "PipelineError",
    "RequestDeduplicator",
    "SafetyGuardrail",
    "SpamGuardrail",
    "build_default_guardrails",
    "dedupe_key",
]
