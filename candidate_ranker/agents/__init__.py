"""
LLM agents

The classifier gateway and the LLM client it runs on.
"""
from .llm_client import LLMClient, LLMResponseError, get_llm_client
from .classifier import CandidateClassifier, LLMClassifier, get_classifier

__all__ = [
    "LLMClient",
    "LLMResponseError",
    "get_llm_client",
    "CandidateClassifier",
    "LLMClassifier",
    "get_classifier",
]
