"""Decision oracle boundary and its LLM-backed implementation."""

from .base import (
    DecisionOracle,
    TaskExecutor,
    OracleError,
    OracleCommunicationError,
    OracleResponseError,
)
from .llm_oracle import LLMDecisionOracle, extract_json_object

__all__ = [
    "DecisionOracle",
    "TaskExecutor",
    "OracleError",
    "OracleCommunicationError",
    "OracleResponseError",
    "LLMDecisionOracle",
    "extract_json_object",
]
