"""
Resource-manager REST provider.

Drives an ARM-style management API: resources are addressed by a path built
from their scope chain, created with PUT, removed with DELETE and listed from
their parent collection. Long-running operations are polled through the
``Azure-AsyncOperation`` or ``Location`` headers (or the resource's own
``provisioningState``) until a terminal state is reached, so callers only
ever see finished operations.

Credential acquisition is not handled here; pass a ready bearer token.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import httpx
import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from stratum.config.settings import Settings, get_settings
from stratum.core.errors import ConfigurationError, NotFoundError, ProviderError
from stratum.providers.registry import register_provider
from stratum.resources.models import ResourceHandle, ResourceState

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "stratum-provider-arm/0.1.0"

SUCCEEDED = "succeeded"
TERMINAL_FAILURES = {"failed", "canceled", "cancelled"}


@dataclass(frozen=True)
class ResourceType:
    """How a resource kind appears in management API paths."""

    segment: str
    api_version: str
    type_name: str | None = None


DEFAULT_RESOURCE_TYPES: dict[str, ResourceType] = {
    "resource_group": ResourceType(
        "resourceGroups", "2022-09-01", "Microsoft.Resources/resourceGroups"
    ),
    "storage_account": ResourceType(
        "providers/Microsoft.Storage/storageAccounts",
        "2023-01-01",
        "Microsoft.Storage/storageAccounts",
    ),
}


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class ArmProvider:
    """Provider adapter for an ARM-style resource management API."""

    name = "arm"

    def __init__(
        self,
        subscription_id: str,
        access_token: str | None,
        *,
        base_url: str = "https://management.azure.com",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        poll_interval: float = 5.0,
        max_polls: int = 120,
        resource_types: dict[str, ResourceType] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not subscription_id:
            raise ConfigurationError("A subscription id is required for the arm provider")
        self._subscription_id = subscription_id
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._types = dict(DEFAULT_RESOURCE_TYPES)
        self._types.update(resource_types or {})
        self._sleep = sleep

        headers = {"Content-Type": "application/json", "User-Agent": user_agent}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, headers=headers)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> "ArmProvider":
        settings = settings or get_settings()
        resource_types = {
            kind: ResourceType(rtype.segment, settings.api_versions[kind], rtype.type_name)
            for kind, rtype in DEFAULT_RESOURCE_TYPES.items()
            if kind in settings.api_versions
        }
        options: dict[str, Any] = {
            "base_url": settings.management_url,
            "timeout": settings.http_timeout,
            "max_retries": settings.http_max_retries,
            "backoff_factor": settings.http_retry_backoff_factor,
            "poll_interval": settings.lro_poll_interval,
            "max_polls": settings.lro_max_polls,
            "resource_types": resource_types,
        }
        options.update(overrides)
        subscription_id = options.pop("subscription_id", settings.subscription_id)
        access_token = options.pop("access_token", settings.access_token)
        return cls(subscription_id or "", access_token, **options)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ArmProvider":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # -- ProviderAdapter ------------------------------------------------------

    def create_or_update(self, handle: ResourceHandle, payload: Any) -> ResourceHandle:
        path = self.resource_path(handle)
        logger.info("arm_put", resource=handle.key, path=path)
        response = self._send("PUT", path, json=payload or {}, params=self._params(handle.kind))
        if self._in_progress(response):
            self._wait(response, path, handle)
            return self.get(handle)
        state = _provisioning_state(response)
        if state in TERMINAL_FAILURES:
            raise ProviderError(
                f"Provisioning '{handle.key}' ended with status {state}",
                {"resource": handle.key, "status": state},
            )
        return self._to_handle(response.json(), handle.kind, handle.scope)

    def delete(self, handle: ResourceHandle) -> None:
        path = self.resource_path(handle)
        logger.info("arm_delete", resource=handle.key, path=path)
        response = self._send("DELETE", path, params=self._params(handle.kind), missing_ok=True)
        if response.status_code == 404:
            logger.debug("arm_delete_absent", resource=handle.key)
            return
        if response.status_code == 202:
            self._wait(response, path, handle, deleting=True)

    def get(self, handle: ResourceHandle) -> ResourceHandle:
        path = self.resource_path(handle)
        response = self._send("GET", path, params=self._params(handle.kind), missing_ok=True)
        if response.status_code == 404:
            raise NotFoundError(f"Resource '{handle.key}' not found", {"resource": handle.key})
        return self._to_handle(response.json(), handle.kind, handle.scope)

    def list(self, scope: str | None, kind: str | None = None) -> list[ResourceHandle]:
        if kind is None:
            if not scope:
                raise ProviderError("Listing without a kind requires a scope")
            path = f"{self._scope_path(scope)}/resources"
            params = self._params("resource_group")
        else:
            path = f"{self._scope_path(scope)}/{self._type(kind).segment}"
            params = self._params(kind)
        return [
            self._to_handle(item, kind or self._kind_for(item.get("type")), scope)
            for item in self._paged(path, params)
        ]

    # -- paths ----------------------------------------------------------------

    def resource_path(self, handle: ResourceHandle) -> str:
        return f"{self._scope_path(handle.scope)}/{self._type(handle.kind).segment}/{handle.name}"

    def _scope_path(self, scope: str | None) -> str:
        path = f"/subscriptions/{self._subscription_id}"
        if not scope:
            return path
        parts = scope.split("/")
        if len(parts) % 2:
            raise ProviderError(f"Malformed scope '{scope}'", {"scope": scope})
        for kind, name in zip(parts[::2], parts[1::2]):
            path = f"{path}/{self._type(kind).segment}/{name}"
        return path

    def _type(self, kind: str) -> ResourceType:
        rtype = self._types.get(kind)
        if rtype is None:
            raise ProviderError(f"Unsupported resource kind '{kind}'", {"kind": kind})
        return rtype

    def _kind_for(self, type_name: str | None) -> str:
        for kind, rtype in self._types.items():
            if rtype.type_name and type_name and rtype.type_name.lower() == type_name.lower():
                return kind
        return type_name or "unknown"

    def _params(self, kind: str) -> dict[str, str]:
        return {"api-version": self._type(kind).api_version}

    # -- transport ------------------------------------------------------------

    def _send(
        self,
        method: str,
        url: str,
        *,
        missing_ok: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        retrying = Retrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, max=30),
            reraise=True,
        )
        try:
            response = retrying(self._send_once, method, url, **kwargs)
        except RetryableHTTPError as exc:
            raise ProviderError(
                f"{method} {url} failed after {self._max_retries} attempts: {exc}",
                {"method": method, "url": url},
            ) from exc

        if response.status_code == 404 and missing_ok:
            return response
        if response.is_error:
            raise ProviderError(
                f"{method} {url} returned HTTP {response.status_code}: {_error_text(response)}",
                {"method": method, "url": url, "status": response.status_code},
            )
        return response

    def _send_once(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc
        if is_retryable_status(response.status_code):
            logger.warning(
                "http_retryable_error",
                status=response.status_code,
                method=method,
                url=url,
            )
            raise RetryableHTTPError(f"HTTP {response.status_code}")
        return response

    def _paged(self, path: str, params: dict[str, str]) -> Iterator[dict[str, Any]]:
        response = self._send("GET", path, params=params)
        while True:
            body = response.json()
            yield from body.get("value", [])
            next_link = body.get("nextLink")
            if not next_link:
                return
            response = self._send("GET", next_link)

    # -- long-running operations ------------------------------------------------

    def _in_progress(self, response: httpx.Response) -> bool:
        if response.status_code == 202:
            return True
        if "Azure-AsyncOperation" in response.headers:
            return True
        state = _provisioning_state(response)
        return state is not None and state != SUCCEEDED and state not in TERMINAL_FAILURES

    def _wait(
        self,
        response: httpx.Response,
        path: str,
        handle: ResourceHandle,
        *,
        deleting: bool = False,
    ) -> None:
        async_url = response.headers.get("Azure-AsyncOperation")
        location = response.headers.get("Location")

        for attempt in range(1, self._max_polls + 1):
            self._sleep(_retry_after(response, self._poll_interval))
            if async_url:
                response = self._send("GET", async_url)
                status = str(response.json().get("status", "")).lower()
            elif location:
                response = self._send("GET", location, missing_ok=True)
                status = "inprogress" if response.status_code == 202 else SUCCEEDED
            else:
                response = self._send("GET", path, params=self._params(handle.kind), missing_ok=True)
                if response.status_code == 404:
                    status = SUCCEEDED if deleting else "failed"
                else:
                    status = _provisioning_state(response) or ("inprogress" if deleting else SUCCEEDED)

            logger.debug("arm_poll", resource=handle.key, attempt=attempt, status=status)
            if status == SUCCEEDED:
                return
            if status in TERMINAL_FAILURES:
                raise ProviderError(
                    f"Operation on '{handle.key}' ended with status {status}",
                    {"resource": handle.key, "status": status},
                )

        raise ProviderError(
            f"Operation on '{handle.key}' did not finish after {self._max_polls} polls",
            {"resource": handle.key},
        )

    # -- mapping --------------------------------------------------------------

    def _to_handle(self, data: dict[str, Any], kind: str, scope: str | None) -> ResourceHandle:
        properties = {
            key: data[key]
            for key in ("location", "sku", "kind", "tags", "properties")
            if key in data
        }
        return ResourceHandle(
            kind=kind,
            name=data.get("name", ""),
            scope=scope,
            remote_id=data.get("id"),
            state=ResourceState.CREATED,
            properties=properties,
        )


def _provisioning_state(response: httpx.Response) -> str | None:
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    state = (body.get("properties") or {}).get("provisioningState")
    return str(state).lower() if state else None


def _retry_after(response: httpx.Response, default: float) -> float:
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _error_text(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
        return error.get("message") or response.text[:200]
    except ValueError:
        return response.text[:200] or "Unknown error"


def _factory(**kwargs: Any) -> ArmProvider:
    return ArmProvider.from_settings(**kwargs)


register_provider(
    ArmProvider.name,
    _factory,
    version="0.1.0",
    description="ARM-style resource manager REST provider",
)

__all__ = ["ArmProvider", "ResourceType", "DEFAULT_RESOURCE_TYPES"]
