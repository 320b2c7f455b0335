from .llm_client import (
    LLM_API_KEY_HEADER,
    build_llm_headers,
    get_llm_service_api_key,
    llm_request,
)

__all__ = [
    "LLM_API_KEY_HEADER",
    "get_llm_service_api_key",
    "build_llm_headers",
    "llm_request",
]
