"""
HTTP client workers use to talk to a dispatcher.

Besides pulling and committing jobs, the client fetches static resources
published by the dispatcher and keeps the most recent ones in memory.
"""

import logging
import tempfile
from collections import OrderedDict
from pathlib import Path

import httpx

from jobdispatch.api.errors import ERROR_COMMIT_CALLBACK_FAILED
from jobdispatch.config import get_settings
from jobdispatch.constants import (
    API_V1_PREFIX,
    DEFAULT_CACHE_SIZE,
    JSON_MEDIA_TYPE,
    RESOURCES_PREFIX,
)
from jobdispatch.exceptions import CommitCallbackError, DispatcherClientError
from jobdispatch.types.codec import decode_job, encode_job
from jobdispatch.types.job import Job, JobCounts

logger = logging.getLogger(__name__)

# Statuses meaning the resource does not exist
_MISSING_RESOURCE_STATUSES = (httpx.codes.NOT_FOUND, httpx.codes.GONE)


class DispatcherClient:
    """
    Async client for one dispatcher.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(
        self,
        base_url: str | None = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Root URL of the dispatcher. Defaults to the configured one.
            cache_size: Maximum number of resources kept in memory.
            timeout: Request timeout in seconds.
            transport: Transport override, mainly for in-process testing.
        """
        settings = get_settings()
        if cache_size < 1:
            raise ValueError("cache_size must be at least 1")

        self.base_url = base_url or settings.dispatcher_url
        self.cache_size = cache_size
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.worker_request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "DispatcherClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the underlying connections."""
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise DispatcherClientError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _unexpected(response: httpx.Response) -> DispatcherClientError:
        return DispatcherClientError(
            f"Unexpected status {response.status_code} for "
            f"{response.request.method} {response.request.url}",
            status_code=response.status_code,
        )

    async def dequeue(self) -> Job | None:
        """
        Take the next waiting job.

        Returns:
            The job, now running on the dispatcher, or None if none is waiting.

        Raises:
            DispatcherClientError: On any other answer.
        """
        response = await self._request("GET", f"{API_V1_PREFIX}/jobs/dequeue")
        if response.status_code == httpx.codes.NO_CONTENT:
            return None
        if response.status_code != httpx.codes.OK:
            raise self._unexpected(response)
        return decode_job(response.content)

    async def commit(self, job: Job) -> None:
        """
        Return a finished job with its result fields.

        Raises:
            CommitCallbackError: If the job was committed but the
                dispatcher's commit callback failed.
            DispatcherClientError: If the commit was rejected.
        """
        response = await self._request(
            "POST",
            f"{API_V1_PREFIX}/jobs/{job.id}/commit",
            content=encode_job(job),
            headers={"Content-Type": JSON_MEDIA_TYPE},
        )
        if response.status_code == httpx.codes.OK:
            return
        if response.status_code == httpx.codes.INTERNAL_SERVER_ERROR:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if isinstance(body, dict) and body.get("error") == ERROR_COMMIT_CALLBACK_FAILED:
                raise CommitCallbackError(job.id, body.get("detail"))
        raise self._unexpected(response)

    async def status(self) -> JobCounts:
        """Get the size of the dispatcher's queues."""
        response = await self._request("GET", f"{API_V1_PREFIX}/status")
        if response.status_code != httpx.codes.OK:
            raise self._unexpected(response)
        return JobCounts.parse(response.text)

    async def get_job(self, job_id: int) -> Job | None:
        """Get a job in any state, or None if the dispatcher does not know it."""
        response = await self._request("GET", f"{API_V1_PREFIX}/jobs/{job_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.status_code != httpx.codes.OK:
            raise self._unexpected(response)
        return decode_job(response.content)

    async def stop_dispatcher(self) -> None:
        """Ask the dispatcher to shut down."""
        response = await self._request("POST", f"{API_V1_PREFIX}/stop")
        if response.status_code != httpx.codes.OK:
            raise self._unexpected(response)

    async def get_resource(self, name: str) -> bytes | None:
        """
        Fetch a resource published by the dispatcher.

        Successful answers are cached; once the cache is full the oldest
        entry is evicted.

        Args:
            name: Path of the resource relative to the resource root.

        Returns:
            The resource content, or None if the dispatcher does not have it.
        """
        name = name.lstrip("/")
        if name in self._cache:
            return self._cache[name]

        response = await self._request("GET", f"{RESOURCES_PREFIX}/{name}")
        if response.status_code in _MISSING_RESOURCE_STATUSES:
            logger.debug("Resource not found", extra={"resource": name})
            return None
        if response.status_code != httpx.codes.OK:
            raise self._unexpected(response)

        content = response.content
        self._cache[name] = content
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return content

    async def get_resource_as_string(self, name: str, encoding: str = "utf-8") -> str | None:
        """Fetch a resource and decode it as text."""
        content = await self.get_resource(name)
        return content.decode(encoding) if content is not None else None

    async def store_resource(self, name: str) -> Path | None:
        """
        Fetch a resource into a new temporary file.

        The caller owns the file and is responsible for deleting it.

        Returns:
            Path of the file, or None if the dispatcher does not have the
            resource.
        """
        content = await self.get_resource(name)
        if content is None:
            return None
        suffix = name.rsplit("/", 1)[-1]
        with tempfile.NamedTemporaryFile(prefix="job-", suffix=f"-{suffix}", delete=False) as f:
            f.write(content)
        return Path(f.name)

    def flush_cache(self) -> None:
        """Forget every cached resource."""
        self._cache.clear()

    @property
    def cached_resources(self) -> list[str]:
        """Names of the cached resources, oldest first."""
        return list(self._cache)
