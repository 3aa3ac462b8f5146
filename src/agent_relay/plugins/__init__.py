"""Plugin contracts and records.

Concrete backends live in their own modules (``memory_data``,
``memory_retrieval``, ``mock_llm``, ``openai_llm``, ``email``).
"""

from agent_relay.plugins.base import (
    DataPlugin,
    EmailPlugin,
    LLMPlugin,
    PluginResult,
    RetrievalPlugin,
    fail,
    ok,
)
from agent_relay.plugins.models import (
    ActionLog,
    ChatRequest,
    ChatResponse,
    EmailMessage,
    EmailReceipt,
    Escalation,
    IndexDocument,
    IndexStats,
    Message,
    NewSession,
    PluginHealth,
    PluginMetadata,
    RetrievalStatus,
    SearchSnippet,
    Session,
    SourceRef,
)

__all__ = [
    "ActionLog",
    "ChatRequest",
    "ChatResponse",
    "DataPlugin",
    "EmailMessage",
    "EmailPlugin",
    "EmailReceipt",
    "Escalation",
    "IndexDocument",
    "IndexStats",
    "LLMPlugin",
    "Message",
    "NewSession",
    "PluginHealth",
    "PluginMetadata",
    "PluginResult",
    "RetrievalPlugin",
    "RetrievalStatus",
    "SearchSnippet",
    "Session",
    "SourceRef",
    "fail",
    "ok",
]
