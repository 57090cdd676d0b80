"""HTTP client for the backend that owns entity records and counters."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from dashboard_shared.utils.retry import retry_async
from entity_engine.core.config import Settings
from entity_engine.core.exceptions import EntityListingError, TransientFetchError
from entity_engine.core.logger import get_logger
from entity_engine.domain.models import DateRange, Metric, Record
from entity_engine.infrastructure.metrics import (
    BACKEND_REQUEST_LATENCY_SECONDS,
    BACKEND_REQUESTS_TOTAL,
)

logger = get_logger("entity_engine.backend")
tracer = trace.get_tracer(__name__)

_NAME_KEYS = ("displayName", "display_name", "real_name")


def _has_display_name(payload: Dict[str, Any]) -> bool:
    return any(
        isinstance(payload.get(k), str) and payload[k].strip() for k in _NAME_KEYS
    )


class BackendClient:
    """Thin async wrapper over the backend's REST surface.

    Resolve and aggregate calls are never retried here; the resolver owns
    that policy so request amplification stays bounded. Only the entity
    listing call retries, because nothing can be shown without it.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        resolve_path: str = "/resolve",
        batch_path: str = "/resolve/batch",
        aggregate_path: str = "/aggregate",
        entities_path: str = "/entities",
        batch_limit: int = 100,
        listing_retries: int = 3,
        listing_retry_base_delay: float = 0.5,
        listing_retry_max_delay: float = 4.0,
    ):
        self.http = http
        self.resolve_path = resolve_path
        self.batch_path = batch_path
        self.aggregate_path = aggregate_path
        self.entities_path = entities_path
        self.batch_limit = batch_limit
        self.listing_retries = listing_retries
        self.listing_retry_base_delay = listing_retry_base_delay
        self.listing_retry_max_delay = listing_retry_max_delay

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, cfg: Settings) -> "BackendClient":
        return cls(
            http,
            resolve_path=cfg.backend_resolve_path,
            batch_path=cfg.backend_batch_path,
            aggregate_path=cfg.backend_aggregate_path,
            entities_path=cfg.backend_entities_path,
            batch_limit=cfg.resolve_batch_size,
            listing_retries=cfg.listing_retries,
            listing_retry_base_delay=cfg.listing_retry_base_delay,
            listing_retry_max_delay=cfg.listing_retry_max_delay,
        )

    # Records
    async def fetch_record(self, entity_id: str) -> Optional[Record]:
        """Resolve one id. ``None`` means the backend does not know it."""
        ids = (entity_id,)
        resp = await self._get("resolve", self.resolve_path, {"id": entity_id}, ids)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, ids)
        body = self._json(resp, ids)
        if not isinstance(body, dict):
            raise TransientFetchError("resolve returned a non-object body", ids)
        if not _has_display_name(body):
            return None
        try:
            return Record.model_validate(body)
        except ValidationError as e:
            raise TransientFetchError(f"malformed record: {e}", ids) from e

    async def fetch_records(self, entity_ids: Sequence[str]) -> Dict[str, Record]:
        """Resolve up to ``batch_limit`` ids in one call.

        Ids missing from the response, or whose entry does not validate, are
        simply absent from the returned mapping.
        """
        if len(entity_ids) > self.batch_limit:
            raise ValueError(
                f"batch of {len(entity_ids)} ids exceeds limit {self.batch_limit}"
            )
        if not entity_ids:
            return {}
        params = {"ids": ",".join(entity_ids)}
        resp = await self._get("resolve_batch", self.batch_path, params, entity_ids)
        self._raise_for_status(resp, entity_ids)
        body = self._json(resp, entity_ids)
        if not isinstance(body, dict):
            raise TransientFetchError("batch returned a non-object body", entity_ids)

        out: Dict[str, Record] = {}
        for eid in entity_ids:
            entry = body.get(eid)
            if not isinstance(entry, dict) or not _has_display_name(entry):
                continue
            try:
                out[eid] = Record.model_validate(entry)
            except ValidationError:
                logger.debug("batch_entry_invalid", extra={"entity_id": eid})
        return out

    # Counters
    async def fetch_count(
        self, entity_id: str, metric: Metric, date_range: DateRange
    ) -> int:
        ids = (entity_id,)
        params = {"id": entity_id, "metric": metric.value, **date_range.as_params()}
        resp = await self._get("aggregate", self.aggregate_path, params, ids)
        self._raise_for_status(resp, ids)
        body = self._json(resp, ids)
        if isinstance(body, dict):
            # older backends answer {"given": n} / {"received": n}
            value = body.get("count", body.get(metric.value))
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        raise TransientFetchError("aggregate returned no integer count", ids)

    # Listing
    async def list_entities(self, metric: Metric) -> List[str]:
        """Ids that have any activity for ``metric``.

        Raises:
            EntityListingError: when every attempt failed.
        """

        async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
            logger.warning(
                "entity_listing_retry",
                extra={
                    "metric": metric.value,
                    "attempt": attempt,
                    "error": str(exc),
                    "sleep_for": round(sleep_for, 2),
                },
            )

        try:
            return await retry_async(
                lambda: self._list_once(metric),
                retries=self.listing_retries,
                base_delay=self.listing_retry_base_delay,
                max_delay=self.listing_retry_max_delay,
                jitter=0.2,
                retry_on=(TransientFetchError,),
                on_retry=_on_retry,
            )
        except TransientFetchError as e:
            logger.error(
                "entity_listing_failed",
                extra={"metric": metric.value, "error": str(e)},
            )
            raise EntityListingError(
                f"could not list {metric.value} entities: {e}", metric=metric.value
            ) from e

    async def _list_once(self, metric: Metric) -> List[str]:
        resp = await self._get(
            "entities", self.entities_path, {"metric": metric.value}, ()
        )
        self._raise_for_status(resp, ())
        body = self._json(resp, ())
        if not isinstance(body, list) or not all(isinstance(x, str) for x in body):
            raise TransientFetchError("entity listing is not a list of ids")
        return list(dict.fromkeys(body))

    # Internals
    async def _get(
        self,
        endpoint: str,
        path: str,
        params: Dict[str, str],
        ids: Sequence[str],
    ) -> httpx.Response:
        with tracer.start_as_current_span(f"backend.{endpoint}") as span:
            span.set_attribute("http.route", path)
            span.set_attribute("entity.count", len(ids))
            with BACKEND_REQUEST_LATENCY_SECONDS.labels(endpoint).time():
                try:
                    resp = await self.http.get(path, params=params)
                except httpx.HTTPError as e:
                    BACKEND_REQUESTS_TOTAL.labels(endpoint, "error").inc()
                    raise TransientFetchError(
                        f"{endpoint} request failed: {e!r}", ids
                    ) from e
            span.set_attribute("http.status_code", resp.status_code)
        if resp.is_success:
            outcome = "ok"
        elif resp.status_code == 404:
            outcome = "not_found"
        else:
            outcome = "http_error"
        BACKEND_REQUESTS_TOTAL.labels(endpoint, outcome).inc()
        return resp

    @staticmethod
    def _raise_for_status(resp: httpx.Response, ids: Iterable[str]) -> None:
        if not resp.is_success:
            raise TransientFetchError(
                f"backend answered {resp.status_code} for {resp.request.url.path}",
                ids,
                status_code=resp.status_code,
            )

    @staticmethod
    def _json(resp: httpx.Response, ids: Iterable[str]) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise TransientFetchError(f"invalid JSON from backend: {e}", ids) from e
