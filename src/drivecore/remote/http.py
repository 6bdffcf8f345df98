"""HTTP client for the remote node/user store.

The store signals a transient failure with status 555. Those responses, and
connection errors or timeouts, are retried with a linearly growing delay
before ``UpstreamUnavailable`` is raised. Client errors are never retried.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from drivecore.config import DriveConfig
from drivecore.errors import NotFound, UpstreamError, UpstreamUnavailable
from drivecore.models import Node
from drivecore.remote.base import NodeIds, NodeStore, as_id_list

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = 555


def _path(*segments: str) -> str:
    return "/".join(quote(str(segment), safe="") for segment in segments)


class HttpNodeStore(NodeStore):
    """``NodeStore`` backed by the remote REST API."""

    def __init__(
        self,
        config: Optional[DriveConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the client.

        Args:
            config: Base URL, API key, timeout and retry settings
            session: requests session to use (a new one if None)
            sleep: Delay function used between retries
        """
        self.config = config or DriveConfig()
        self.session = session or requests.Session()
        self._sleep = sleep
        if self.config.api_key:
            self.session.headers["Authorization"] = f"bearer {self.config.api_key}"
        self.session.headers["Content-Type"] = "application/json"

    def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        missing: Optional[Tuple[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method
            endpoint: Path below the base URL
            data: JSON body
            params: Query parameters
            missing: (kind, identifier) reported if the store answers 404

        Returns:
            Decoded JSON body ({} if empty)

        Raises:
            NotFound: On 404
            UpstreamError: On any other non-success status
            UpstreamUnavailable: When every attempt failed transiently
        """
        url = f"{self.config.api_base_url}{endpoint}"
        attempts = self.config.retry_attempts
        last_error: Optional[str] = None

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.request(
                    method,
                    url,
                    json=data,
                    params=params,
                    timeout=self.config.request_timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if response.status_code == TRANSIENT_STATUS:
                    last_error = f"HTTP {TRANSIENT_STATUS}"
                elif response.ok:
                    return response.json() if response.content else {}
                elif response.status_code == 404 and missing is not None:
                    raise NotFound(*missing)
                else:
                    raise UpstreamError(response.status_code, self._error_message(response))

            if attempt < attempts:
                delay = self.config.retry_backoff * attempt
                logger.warning(
                    f"{method} {endpoint} failed ({last_error}), "
                    f"attempt {attempt}/{attempts}, retrying in {delay:.2f}s"
                )
                self._sleep(delay)

        logger.error(f"{method} {endpoint} failed after {attempts} attempts: {last_error}")
        raise UpstreamUnavailable(attempts, last_error)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason or f"HTTP {response.status_code}"
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.reason or f"HTTP {response.status_code}"

    # Users

    def create_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/users", data=user_data)

    def get_user(self, username: str) -> Dict[str, Any]:
        body = self._request("GET", f"/users/{_path(username)}", missing=("user", username))
        return body.get("user", body)

    def update_user(self, username: str, user_data: Dict[str, Any]) -> None:
        self._request(
            "PUT", f"/users/{_path(username)}", data=user_data, missing=("user", username)
        )

    def delete_user(self, username: str) -> None:
        self._request("DELETE", f"/users/{_path(username)}", missing=("user", username))

    def authenticate_user(self, username: str, key: str) -> bool:
        try:
            self._request("POST", f"/users/{_path(username, 'auth')}", data={"key": key})
        except UpstreamError as e:
            if e.status_code in (401, 403, 404):
                return False
            raise
        return True

    # Nodes

    def search_nodes(
        self,
        username: str,
        after: Optional[str] = None,
        match: Optional[Dict[str, Any]] = None,
        regex_match: Optional[Dict[str, str]] = None,
    ) -> List[Node]:
        params = {}
        if after:
            params["after"] = after
        if match:
            params["match"] = json.dumps(match)
        if regex_match:
            params["regexMatch"] = json.dumps(regex_match)

        body = self._request(
            "GET", f"/filesystem/{_path(username, 'search')}", params=params or None
        )
        return [Node.from_dict(item) for item in body.get("nodes", [])]

    def create_node(self, username: str, node_data: Dict[str, Any]) -> Node:
        body = self._request("POST", f"/filesystem/{_path(username)}", data=node_data)
        return Node.from_dict(body.get("node", body))

    def get_nodes(self, username: str, node_ids: NodeIds) -> List[Node]:
        ids = as_id_list(node_ids)
        body = self._request(
            "GET",
            f"/filesystem/{_path(username, *ids)}",
            missing=("node", ",".join(ids)),
        )
        return [Node.from_dict(item) for item in body.get("nodes", [])]

    def update_node(self, username: str, node_id: str, node_data: Dict[str, Any]) -> None:
        self._request(
            "PUT",
            f"/filesystem/{_path(username, node_id)}",
            data=node_data,
            missing=("node", node_id),
        )

    def delete_nodes(self, username: str, node_ids: NodeIds) -> None:
        ids = as_id_list(node_ids)
        self._request(
            "DELETE",
            f"/filesystem/{_path(username, *ids)}",
            missing=("node", ",".join(ids)),
        )
