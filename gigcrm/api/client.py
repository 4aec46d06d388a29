"""
API Client - REST transport to the booking backend.
Every fetch and mutation in the engine goes through api_request().
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from gigcrm.config import config
from gigcrm.errors import ApiError

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 10


# =============================================================================
# ENDPOINT PATHS
# =============================================================================

def assignments_by_musician_path(planner_id: int) -> str:
    return f"/planner-assignments/by-musician/{planner_id}"


def assignments_path() -> str:
    return "/planner-assignments"


def contracts_path() -> str:
    return "/monthly-contracts"


def generate_path() -> str:
    return "/monthly-contracts/generate"


def contract_path(contract_id: int) -> str:
    return f"/monthly-contracts/{contract_id}"


def send_path(contract_id: int) -> str:
    return f"/monthly-contracts/{contract_id}/send"


def contract_musicians_path(contract_id: int) -> str:
    return f"/monthly-contracts/{contract_id}/musicians"


def date_status_path(date_id: int) -> str:
    return f"/monthly-contract-dates/{date_id}/status"


def token_path(token: str) -> str:
    return f"/monthly-contract-musicians/token/{quote(token, safe='')}"


def resend_path(contract_id: int) -> str:
    return f"/contracts/{contract_id}/resend"


def cancel_path(contract_id: int) -> str:
    return f"/contracts/{contract_id}/cancel"


# =============================================================================
# TRANSPORT
# =============================================================================

def _error_body(response: requests.Response) -> str:
    """Backend error message, verbatim, falling back to the HTTP reason phrase."""
    return response.text or response.reason or ''


def api_request(
    method: str,
    path: str,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Issue one request against the backend and return the decoded JSON.

    Args:
        method: HTTP verb
        path: Endpoint path relative to GIGCRM_API_URL, e.g. '/monthly-contracts/4'
        payload: Optional JSON body
        params: Optional query string parameters

    Returns: Parsed JSON, or {'success': True, 'status': code} for empty bodies

    Raises:
        ApiError on any non-2xx status or transport failure. No retries.
    """
    url = f"{config.API_BASE_URL}{path}"
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if config.API_TOKEN:
        headers["Authorization"] = f"Bearer {config.API_TOKEN}"

    logger.debug(f"API {method} {url} payload={payload!r}")
    try:
        response = requests.request(
            method,
            url,
            json=payload,
            params=params,
            headers=headers,
            timeout=(_CONNECT_TIMEOUT, config.TIMEOUT_SECONDS),
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"API {method} {path} transport error: {e}")
        raise ApiError(None, str(e))

    if not response.ok:
        body = _error_body(response)
        logger.warning(f"API {method} {path} -> {response.status_code}: {body}")
        raise ApiError(response.status_code, body)

    if response.status_code == 204 or not response.content:
        return {'success': True, 'status': response.status_code}

    try:
        return response.json()
    except ValueError:
        logger.debug(f"API {method} {path} returned non-JSON body")
        return {'success': True, 'status': response.status_code}


def api_get(path: str, params: Optional[Dict[str, Any]] = None) -> Any:
    return api_request('GET', path, params=params)


def api_post(path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
    return api_request('POST', path, payload=payload if payload is not None else {})


def api_put(path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
    return api_request('PUT', path, payload=payload if payload is not None else {})


def lookup_public_ip() -> str:
    """
    Responder's public IP for the signature record. 'Unknown' when the lookup
    service cannot be reached; the response is still recorded.
    """
    try:
        response = requests.get(config.IP_LOOKUP_URL, timeout=(_CONNECT_TIMEOUT, 10))
        response.raise_for_status()
        return response.json().get('ip') or 'Unknown'
    except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
        logger.warning(f"IP lookup failed, recording 'Unknown': {e}")
        return 'Unknown'
