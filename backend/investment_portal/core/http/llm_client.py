from __future__ import annotations

import logging
from typing import Any

import requests

from investment_portal.core.config import settings

LLM_API_KEY_HEADER = "X-API-Key"

logger = logging.getLogger(__name__)


def get_llm_service_api_key() -> str:
    key = settings.llm_service_api_key
    if not key:
        logger.error("Missing required setting LLM_SERVICE_API_KEY for LLM service outbound calls")
        raise RuntimeError("Missing required setting: LLM_SERVICE_API_KEY")
    return key


def build_llm_headers(extra_headers: dict[str, str] | None = None) -> dict[str, str]:
    headers = {LLM_API_KEY_HEADER: get_llm_service_api_key(), "Content-Type": "application/json"}
    if extra_headers:
        headers.update(extra_headers)
    return headers


def llm_request(method: str, path_or_url: str, **kwargs: Any) -> requests.Response:
    if path_or_url.startswith("http://") or path_or_url.startswith("https://"):
        url = path_or_url
    else:
        url = f"{settings.llm_service_url.rstrip('/')}/{path_or_url.lstrip('/')}"

    headers = dict(kwargs.pop("headers", {}) or {})
    headers = build_llm_headers(headers)
    kwargs.setdefault("timeout", settings.llm_service_timeout_seconds)

    return requests.request(method=method, url=url, headers=headers, **kwargs)
