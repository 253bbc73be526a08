"""
Host Rate Limiter - Per-upstream-host request queuing.

============================================================
RESPONSIBILITY
============================================================
Every outbound HTTP call made by a signal collector goes
through HostRateLimiter.enqueue().

- Classifies the URL into a host bucket (static substring table)
- Spaces dispatches on a bucket by 1 / requests_per_second
- Retries HTTP 429 and transport failures with exponential
  backoff, re-inserting the request at the HEAD of its queue
- Rejects with RateLimitExhaustedError once the per-request
  retry budget is spent

============================================================
ORDERING
============================================================
Within one bucket: strict FIFO, except that a retried request
goes back to the front, so it is dispatched before any request
enqueued after it. Across buckets: no ordering, each bucket has
its own drain loop.

============================================================
CONCURRENCY
============================================================
All bucket state lives in RateLimiterState and is mutated by
that bucket's drain loop only (enqueue appends without
suspending). At most one drain loop per bucket: the draining
flag is checked and set with no await in between.

============================================================
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from core.exceptions import ConfigurationError, RateLimitExhaustedError
from data_sources.models import (
    DEFAULT_HOST_POLICIES,
    DEFAULT_POLICY,
    HostBucketState,
    HostPolicy,
    HttpResponse,
    RateLimitedRequest,
)


logger = logging.getLogger("rate_limiter")

Transport = Callable[[str, Dict[str, Any]], Awaitable[HttpResponse]]
SleepFunc = Callable[[float], Awaitable[None]]


class RateLimiterState:
    """
    Owns the per-host queues and last-dispatch timestamps.

    Passed into HostRateLimiter so that tests and separate
    pipelines can run fully isolated limiters.
    """

    def __init__(self) -> None:
        self._buckets: Dict[str, HostBucketState] = {}

    def bucket(self, host_key: str) -> HostBucketState:
        """Get or create the bucket for a host key."""
        state = self._buckets.get(host_key)
        if state is None:
            state = HostBucketState()
            self._buckets[host_key] = state
        return state

    def host_keys(self) -> List[str]:
        return list(self._buckets.keys())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {key: bucket.to_dict() for key, bucket in self._buckets.items()}


class HostRateLimiter:
    """
    Per-host request queue with pacing and bounded retries.

    Usage:
        async with AiohttpTransport() as transport:
            limiter = HostRateLimiter(transport=transport)
            response = await limiter.enqueue("https://api.coingecko.com/api/v3/ping")

    Raises:
        ConfigurationError: a policy fails HostPolicy.validate()
    """

    def __init__(
        self,
        transport: Transport,
        policies: Iterable[HostPolicy] = DEFAULT_HOST_POLICIES,
        default_policy: HostPolicy = DEFAULT_POLICY,
        state: Optional[RateLimiterState] = None,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._policies: Tuple[HostPolicy, ...] = tuple(policies)
        errors = [e for p in (*self._policies, default_policy) for e in p.validate()]
        if errors:
            raise ConfigurationError(
                f"Invalid host policy: {'; '.join(errors)}",
                config_key="host_policies",
            )

        self._transport = transport
        self._default_policy = default_policy
        self._state = state if state is not None else RateLimiterState()
        self._monotonic = monotonic
        self._sleep = sleep
        self._drain_tasks: Dict[str, "asyncio.Task[None]"] = {}

    @property
    def state(self) -> RateLimiterState:
        return self._state

    # =========================================================
    # PUBLIC API
    # =========================================================

    def classify(self, url: str) -> HostPolicy:
        """Return the policy of the first table entry matching the URL."""
        for policy in self._policies:
            if policy.matches(url):
                return policy
        return self._default_policy

    async def enqueue(self, url: str, **options: Any) -> HttpResponse:
        """
        Queue a GET request on its host bucket and wait for the outcome.

        Args:
            url: Target URL
            **options: Passed to the transport (params, headers)

        Returns:
            The response (any status other than 429)

        Raises:
            RateLimitExhaustedError: retries used up on 429/transport errors
        """
        policy = self.classify(url)
        bucket = self._state.bucket(policy.key)

        future: "asyncio.Future[HttpResponse]" = asyncio.get_running_loop().create_future()
        bucket.queue.append(RateLimitedRequest(url=url, options=dict(options), future=future))

        if not bucket.draining:
            bucket.draining = True
            self._drain_tasks[policy.key] = asyncio.create_task(
                self._drain(policy, bucket),
                name=f"rate-limiter-drain-{policy.key}",
            )
        else:
            logger.debug(f"[{policy.key}] queued behind {len(bucket.queue) - 1} request(s): {url}")

        return await future

    def stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-bucket counters for logging and health output."""
        return self._state.to_dict()

    async def wait_idle(self) -> None:
        """Wait until every running drain loop has finished."""
        tasks = [task for task in self._drain_tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================
    # DRAIN LOOP
    # =========================================================

    async def _drain(self, policy: HostPolicy, bucket: HostBucketState) -> None:
        try:
            while bucket.queue:
                request = bucket.queue.popleft()

                if request.future.done():
                    # Caller abandoned the request before dispatch
                    continue

                try:
                    await self._dispatch(policy, bucket, request)
                except asyncio.CancelledError:
                    request.future.cancel()
                    raise
                except Exception as e:
                    # Settle the popped request; the rest of the queue keeps draining
                    logger.exception(f"[{policy.key}] Dispatch failed for {request.url}")
                    if not request.future.done():
                        request.future.set_exception(e)
        finally:
            bucket.draining = False

    async def _dispatch(
        self,
        policy: HostPolicy,
        bucket: HostBucketState,
        request: RateLimitedRequest,
    ) -> None:
        await self._wait_for_slot(policy, bucket)
        bucket.last_dispatch_at = self._monotonic()
        bucket.dispatched += 1

        try:
            response = await self._transport(request.url, request.options)
        except Exception as e:
            logger.warning(f"[{policy.key}] Transport error for {request.url}: {e}")
            await self._retry_or_reject(policy, bucket, request, e)
            return

        if response.is_rate_limited:
            request.last_status = response.status
            logger.warning(f"[{policy.key}] HTTP 429 for {request.url}")
            await self._retry_or_reject(policy, bucket, request, None)
            return

        if not request.future.done():
            request.future.set_result(response)

    async def _wait_for_slot(self, policy: HostPolicy, bucket: HostBucketState) -> None:
        if bucket.last_dispatch_at is None:
            return
        elapsed = self._monotonic() - bucket.last_dispatch_at
        remaining = policy.min_interval_seconds - elapsed
        if remaining > 0:
            await self._sleep(remaining)

    async def _retry_or_reject(
        self,
        policy: HostPolicy,
        bucket: HostBucketState,
        request: RateLimitedRequest,
        error: Optional[Exception],
    ) -> None:
        if request.retries < policy.max_retries:
            request.retries += 1
            bucket.retried += 1
            delay = policy.retry_delay_seconds * (2 ** request.retries)
            logger.info(
                f"[{policy.key}] Retry {request.retries}/{policy.max_retries} "
                f"in {delay:.2f}s: {request.url}"
            )
            await self._sleep(delay)
            bucket.queue.appendleft(request)
            return

        bucket.exhausted += 1
        logger.error(
            f"[{policy.key}] Giving up after {request.retries} retries: {request.url}"
        )
        if not request.future.done():
            request.future.set_exception(
                RateLimitExhaustedError(
                    url=request.url,
                    host_key=policy.key,
                    retries=request.retries,
                    last_status=request.last_status,
                    cause=error,
                )
            )


__all__ = [
    "RateLimiterState",
    "HostRateLimiter",
    "Transport",
]
