"""Error taxonomy and Elasticsearch error classification.

Every public operation catches the client's ``ApiError``/``TransportError``
and re-raises one of the classes below, so callers never see raw client
exceptions:

* :class:`ClientInputError` - bad sort fields, malformed cursors, not-found
  lookups. Safe to show to the caller verbatim.
* :class:`ServerGatewayError` - Elasticsearch unreachable or failing, or a
  server-side invariant broken (e.g. hits without sort values).
"""
from __future__ import annotations

import logging
from typing import Any

from elasticsearch import BadRequestError

logger = logging.getLogger(__name__)


class SearchError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class ClientInputError(SearchError):
    status_code = 400


class InvalidCursor(ClientInputError):
    pass


class ServerGatewayError(SearchError):
    status_code = 502


def _type_with_reason(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    return ": ".join(str(part) for part in (node.get("type"), node.get("reason")) if part)


def normalize_es_error_message(error: Exception) -> str:
    """Extract a readable message from the nested Elasticsearch error body.

    Preference order: the ``root_cause`` list, then the ``caused_by`` node,
    then the exception message itself.
    """

    message = getattr(error, "message", None) or str(error)
    body = getattr(error, "body", None)
    if not isinstance(body, dict):
        return message
    error_node = body.get("error")
    if not isinstance(error_node, dict):
        return message
    root_cause = error_node.get("root_cause")
    if isinstance(root_cause, list) and root_cause:
        return ", ".join(filter(None, (_type_with_reason(node) for node in root_cause)))
    caused_by = _type_with_reason(error_node.get("caused_by"))
    if caused_by:
        return caused_by
    return message


def log_es_error(error: Exception) -> None:
    body = getattr(error, "body", None)
    if body:
        logger.error("ES ERR %s", body)
    else:
        logger.error("ES ERR %s", error)


def classify_es_error(error: Exception, message: str = "ElasticSearch encountered an error") -> SearchError:
    """Map a client exception onto the error taxonomy."""

    log_es_error(error)
    detail = normalize_es_error_message(error)
    if isinstance(error, BadRequestError):
        return ClientInputError(message, detail=detail)
    return ServerGatewayError(message, detail=detail)
