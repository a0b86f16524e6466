"""
Agents: definitions, the external runtime client, and the client relay.
"""

from src.agents.definitions import AgentDefinition, apply_model_overrides, load_agent_definitions
from src.agents.relay import ChatRelay, collect_assessment_reply, translate_message
from src.agents.runtime import (
    AgentRuntime,
    HttpAgentRuntime,
    QueryRequest,
    build_assessment_request,
    build_educator_request,
    build_live_companion_request,
)

__all__ = [
    "AgentDefinition",
    "AgentRuntime",
    "apply_model_overrides",
    "ChatRelay",
    "HttpAgentRuntime",
    "QueryRequest",
    "build_assessment_request",
    "build_educator_request",
    "build_live_companion_request",
    "collect_assessment_reply",
    "load_agent_definitions",
    "translate_message",
]
