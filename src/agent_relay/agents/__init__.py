"""Bundled agents: retrieval, data, llm and answer."""

from agent_relay.agents.builders import (
    build_agent_map,
    build_answer_agent,
    build_data_agent,
    build_llm_agent,
    build_retrieval_agent,
)

__all__ = [
    "build_agent_map",
    "build_answer_agent",
    "build_data_agent",
    "build_llm_agent",
    "build_retrieval_agent",
]
