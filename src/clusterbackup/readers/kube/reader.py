from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from clusterbackup.core.contracts import Instance, ResourceTypeRef
from clusterbackup.core.exceptions import ReaderError, ReaderForbiddenError, ResourceNotFoundError
from clusterbackup.core.logger import get_logger
from clusterbackup.readers.base import Reader
from clusterbackup.readers.kube.auth import build_auth_headers, build_ssl_context
from clusterbackup.readers.kube.throttle import RateLimiter
from clusterbackup.readers.kube.types import KubeApiConnection
from clusterbackup.readers.registry import register_reader

logger = get_logger(__name__)


@register_reader(kind="kube_api")
class KubeApiReader(Reader):
    """
    Reader backed by the Kubernetes REST API.

    ``list`` walks every page (``limit``/``continue``) of the cluster-wide
    collection. Items in a list response carry no ``apiVersion``/``kind``;
    they are filled in from the list envelope so that written files are
    complete objects.
    """

    def __init__(
        self,
        connection: KubeApiConnection,
        *,
        client: Optional[httpx.Client] = None,
    ):
        self.connection = connection
        self._owns_client = client is None
        self._limiter = RateLimiter(connection.qps, connection.burst)

        headers = {"Accept": "application/json"}
        headers.update(connection.headers)
        headers.update(build_auth_headers(connection.auth))

        self._client = client or httpx.Client(
            base_url=connection.server,
            timeout=connection.timeout_seconds,
            headers=headers,
            verify=build_ssl_context(connection.tls, connection.auth),
        )

    def list(self, ref: ResourceTypeRef) -> List[Instance]:
        path = ref.api_path()
        items: List[Instance] = []
        continue_token: Optional[str] = None
        pages = 0

        while True:
            params: Dict[str, Any] = {"limit": self.connection.page_size}
            if continue_token:
                params["continue"] = continue_token

            body = self._request(path, params=params, what=f"listing {ref}")
            pages += 1

            api_version = body.get("apiVersion") or ref.api_version
            list_kind = body.get("kind") or ""
            item_kind = list_kind[: -len("List")] if list_kind.endswith("List") else list_kind

            for item in body.get("items") or []:
                if api_version:
                    item.setdefault("apiVersion", api_version)
                if item_kind:
                    item.setdefault("kind", item_kind)
                items.append(item)

            continue_token = (body.get("metadata") or {}).get("continue")
            if not continue_token:
                break

        logger.debug("Listed %d %s in %d page(s)", len(items), ref, pages)
        return items

    def get(self, ref: ResourceTypeRef, namespace: str, name: str) -> Instance:
        path = ref.api_path(namespace or None, name)
        try:
            return self._request(path, what=f"getting {ref.resource} {namespace}/{name}")
        except ReaderError as exc:
            if exc.status_code == 404:
                raise ResourceNotFoundError(ref.resource, namespace, name) from None
            raise

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _request(self, path: str, *, params: Optional[Dict[str, Any]] = None, what: str) -> Dict[str, Any]:
        self._limiter.acquire()
        try:
            resp = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise ReaderError(f"{what}: {exc}") from exc

        if resp.status_code in (401, 403):
            raise ReaderForbiddenError(
                f"{what}: forbidden ({resp.status_code})",
                status_code=resp.status_code,
                details={"reason": _status_message(resp)},
            )
        if resp.status_code >= 400:
            raise ReaderError(
                f"{what}: HTTP {resp.status_code}: {_status_message(resp)}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            content_type = resp.headers.get("content-type", "unknown")
            raise ReaderError(
                f"{what}: response is not JSON (Content-Type: {content_type}). "
                f"Response preview: {resp.text[:200]}"
            ) from exc

        if not isinstance(body, dict):
            raise ReaderError(f"{what}: expected a JSON object, got {type(body).__name__}")
        return body


def _status_message(resp: httpx.Response) -> str:
    # The API server answers errors with a Status object.
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text[:200]
