"""Taxonomy lookups against the GBIF species API.

The mapping builder only depends on the `TaxonomyLookup` protocol, so a
cached, batched or offline implementation can be swapped in.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Iterable, NamedTuple, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from occurrence_cube.defaults import (
    GBIF_API_URL,
    LOOKUP_DEADLINE_SECONDS,
    LOOKUP_MAX_WORKERS,
    LOOKUP_RETRIES,
    LOOKUP_TIMEOUT_SECONDS,
    USER_AGENT,
)
from occurrence_cube.types import TaxonKey, TaxonMetadata

logger = logging.getLogger(__name__)


class TaxonomyLookup(Protocol):
    def resolve(self, key: TaxonKey) -> TaxonMetadata | None:
        """Resolve metadata for `key`, or `None` if it can't be resolved."""
        ...


def _parse_species_response(key: TaxonKey, body: dict[str, Any]) -> TaxonMetadata:
    accepted_key = body.get("acceptedKey")
    return TaxonMetadata(
        key=key,
        scientific_name=body.get("scientificName"),
        rank=body.get("rank"),
        taxonomic_status=body.get("taxonomicStatus"),
        accepted_key=int(accepted_key) if accepted_key is not None else None,
    )


class GbifTaxonomyLookup:
    """Resolves taxon keys with `GET /species/{key}` on the GBIF API."""

    def __init__(
        self,
        api_url: str = GBIF_API_URL,
        timeout: float = LOOKUP_TIMEOUT_SECONDS,
        retries: int = LOOKUP_RETRIES,
        session: requests.Session | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            retry = Retry(
                total=retries,
                backoff_factor=0.5,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=("GET",),
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        session.headers.update(
            {"Accept": "application/json", "User-Agent": USER_AGENT}
        )
        self.session = session

    def resolve(self, key: TaxonKey) -> TaxonMetadata | None:
        url = f"{self.api_url}/species/{key}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Taxonomy lookup failed for {key}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Taxonomy lookup returned invalid JSON for {key}: {e}")
            return None

        if not body:
            logger.warning(f"Taxonomy lookup returned no data for {key}")
            return None
        return _parse_species_response(key, body)


class CachedTaxonomyLookup:
    """Memoises another lookup. Failed lookups are retried on the next call."""

    def __init__(self, inner: TaxonomyLookup):
        self.inner = inner
        self._cache: dict[TaxonKey, TaxonMetadata] = {}
        self._lock = threading.Lock()

    def resolve(self, key: TaxonKey) -> TaxonMetadata | None:
        with self._lock:
            if key in self._cache:
                return self._cache[key]
        metadata = self.inner.resolve(key)
        if metadata is not None:
            with self._lock:
                self._cache[key] = metadata
        return metadata


class LookupResults(NamedTuple):
    metadata: dict[TaxonKey, TaxonMetadata]
    failed: list[TaxonKey]


def resolve_many(
    lookup: TaxonomyLookup,
    keys: Iterable[TaxonKey],
    max_workers: int = LOOKUP_MAX_WORKERS,
    deadline: float | None = LOOKUP_DEADLINE_SECONDS,
) -> LookupResults:
    """
    Resolve metadata for many keys with bounded concurrency.

    A key whose lookup fails, raises, or is still pending when `deadline`
    seconds have elapsed is reported in `failed`; the other keys are
    unaffected.

    Args:
        lookup: The taxonomy lookup to call once per key
        keys: Keys to resolve; duplicates are resolved once
        max_workers: Maximum number of concurrent lookups
        deadline: Seconds allowed for the whole batch, or `None` for no limit

    Returns:
        Metadata of resolved keys and the sorted list of failed keys
    """
    unique_keys = list(dict.fromkeys(keys))
    metadata: dict[TaxonKey, TaxonMetadata] = {}
    failed: list[TaxonKey] = []
    if not unique_keys:
        return LookupResults(metadata, failed)

    logger.info(f"Resolving taxonomy for {len(unique_keys)} keys")
    expires_at = None if deadline is None else time.monotonic() + deadline

    executor = ThreadPoolExecutor(max_workers=max_workers)
    futures: dict[Future[TaxonMetadata | None], TaxonKey] = {
        executor.submit(lookup.resolve, key): key for key in unique_keys
    }
    pending = set(futures)
    try:
        while pending:
            timeout = None
            if expires_at is not None:
                timeout = max(0.0, expires_at - time.monotonic())
            done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            if not done:
                break
            for future in done:
                key = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning(f"Taxonomy lookup raised for {key}: {e}")
                    result = None
                if result is None:
                    failed.append(key)
                else:
                    metadata[key] = result
    finally:
        for future in pending:
            future.cancel()
        executor.shutdown(wait=False, cancel_futures=True)

    if pending:
        logger.warning(
            f"Taxonomy lookup deadline of {deadline}s reached with "
            f"{len(pending)} keys unresolved"
        )
        failed.extend(futures[future] for future in pending)

    return LookupResults(metadata, sorted(failed))
