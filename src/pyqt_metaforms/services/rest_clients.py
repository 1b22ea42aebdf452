"""REST implementations of the action executor and household directory."""

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from pyqt_metaforms.exceptions import ActionExecutionError, DirectoryFetchError
from pyqt_metaforms.protocols.action_executor import ActionResult
from pyqt_metaforms.protocols.form_config import get_form_config

logger = logging.getLogger(__name__)


class _RestClient:
    """Shared session, base URL and header handling."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ):
        config = get_form_config()
        self.base_url = base_url if base_url is not None else config.api_base_url
        self.timeout = timeout if timeout is not None else config.request_timeout
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json"}
        self.headers.update(headers or {})

    def _url(self, endpoint: str) -> str:
        return self.base_url.rstrip("/") + endpoint


class RestActionExecutor(_RestClient):
    """Executes metadata actions by POSTing ``{action, input, context}``."""

    def __init__(self, *args, endpoint: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.endpoint = endpoint or get_form_config().actions_endpoint

    def execute(
        self,
        action: Mapping[str, Any],
        input: Any = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ActionResult:
        url = self._url(self.endpoint)
        body = {"action": dict(action), "input": input, "context": dict(context or {})}
        logger.debug(f"POST {url} action={action.get('id')}")

        try:
            resp = self.session.post(url, json=body, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Action request to {url} failed: {e}")
            raise ActionExecutionError(f"Unable to reach the server: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if not resp.ok:
            message = payload.get("error") or payload.get("message") or f"Request failed with status {resp.status_code}"
            result = ActionResult.from_payload({**payload, "success": False, "message": message})
            logger.warning(f"Action {action.get('id')} rejected ({resp.status_code}): {message}")
            raise ActionExecutionError(message, result=result)

        return ActionResult.from_payload(payload)


class RestHouseholdDirectory(_RestClient):
    """Reads household rows from ``GET /households`` (``{data: [...]}``)."""

    def __init__(self, *args, endpoint: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.endpoint = endpoint or get_form_config().households_endpoint

    def fetch_households(self) -> List[Dict[str, Any]]:
        url = self._url(self.endpoint)
        logger.debug(f"GET {url}")
        try:
            resp = self.session.get(url, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise DirectoryFetchError(f"Household directory unavailable: {e}") from e

        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise DirectoryFetchError("Household directory response has no data list")
        logger.info(f"Fetched {len(rows)} households")
        return rows
