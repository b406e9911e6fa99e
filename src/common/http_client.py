"""Shared HTTP helpers used across registry and repository clients.

Encapsulates common request/timeout error handling so modules avoid
duplicating try/except blocks. Failures are raised as the caller's error
type instead of being retried: registry and repository operations are
fatal when the remote side cannot be reached.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Type

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import JLLGenError

logger = logging.getLogger(__name__)


def _request(
    method: str,
    url: str,
    *,
    context: str,
    error_cls: Type[JLLGenError],
    **kwargs: Any
) -> requests.Response:
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action=method,
                    target=safe_target,
                    context=context
                )
            )
        try:
            res = requests.request(method, url, timeout=Constants.REQUEST_TIMEOUT, **kwargs)
        except requests.Timeout as exc:
            logger.error(
                "%s request timed out after %s seconds",
                context,
                Constants.REQUEST_TIMEOUT,
            )
            raise error_cls(f"{context} request to {safe_target} timed out") from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error: %s", context, exc)
            raise error_cls(f"{context} request to {safe_target} failed: {exc}") from exc
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action=method,
                    outcome="success",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context
                )
            )
        return res


def safe_get(url: str, *, context: str, error_cls: Type[JLLGenError], **kwargs: Any) -> requests.Response:
    """Perform a GET request, raising ``error_cls`` on transport failures."""
    return _request("GET", url, context=context, error_cls=error_cls, **kwargs)


def safe_post(url: str, *, context: str, error_cls: Type[JLLGenError], **kwargs: Any) -> requests.Response:
    """Perform a POST request, raising ``error_cls`` on transport failures."""
    return _request("POST", url, context=context, error_cls=error_cls, **kwargs)


def get_json(
    url: str,
    *,
    context: str,
    error_cls: Type[JLLGenError],
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, Optional[Any]]:
    """Perform GET request and parse a JSON body.

    Returns:
        Tuple of (status_code, parsed_json_or_none)
    """
    res = safe_get(url, context=context, error_cls=error_cls, headers=headers)
    if res.status_code == 200 and res.text:
        try:
            return res.status_code, res.json()
        except ValueError:
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    outcome="json_decode_error",
                    target=safe_url(url)
                )
            )
            return res.status_code, None
    return res.status_code, None
