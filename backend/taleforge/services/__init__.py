"""
业务逻辑服务包
"""
from .llm_service import LLMService, LLMServiceError

__all__ = [
    "LLMService",
    "LLMServiceError",
]
