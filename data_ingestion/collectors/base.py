"""
Data Ingestion - Base Signal Collector.

============================================================
PURPOSE
============================================================
Abstract base class for all per-domain signal collectors.

============================================================
DESIGN PRINCIPLES
============================================================
- Fetch + normalize only; no scoring
- Every outbound HTTP call goes through the HostRateLimiter
- One failure type out: CollectorError
- Absent values are None, never 0 or a placeholder

============================================================
FAILURE MAPPING
============================================================
RateLimitExhaustedError  -> CollectorError ("signal unavailable")
non-2xx response         -> CollectorError (status_code set)
malformed payload        -> CollectorError ("Parse error")
anything else            -> CollectorError ("Unexpected error")

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

from core.exceptions import CollectorError, RateLimitExhaustedError
from data_ingestion.types import CollectorConfig, SignalBundle, SignalDomain
from data_sources.rate_limiter import HostRateLimiter


B = TypeVar("B", bound=SignalBundle)


class BaseSignalCollector(ABC, Generic[B]):
    """
    Abstract base class for signal collectors.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Fetch one domain's raw data for one asset
    - Normalize it into a typed SignalBundle
    - Convert every failure into CollectorError

    ============================================================
    LIFECYCLE
    ============================================================
    1. Initialize with config and the shared limiter
    2. Call collect(asset_id) once per asset per run
    3. Bundle returned, or CollectorError raised

    ============================================================
    """

    domain: SignalDomain

    def __init__(
        self,
        config: CollectorConfig,
        limiter: Optional[HostRateLimiter] = None,
    ) -> None:
        """
        Initialize the collector.

        Args:
            config: Collector configuration
            limiter: Shared rate limiter (not needed by store-backed collectors)
        """
        self._config = config
        self._limiter = limiter
        self._logger = logging.getLogger(f"collector.{self.domain.value}")

    @property
    def domain_name(self) -> str:
        return self.domain.value

    # =========================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # =========================================================

    @abstractmethod
    async def fetch_signals(self, asset_id: str) -> B:
        """
        Fetch and normalize this domain's signals.

        Raises:
            CollectorError, RateLimitExhaustedError, KeyError,
            TypeError, ValueError (all mapped by collect())
        """
        pass

    # =========================================================
    # COLLECTION WORKFLOW
    # =========================================================

    async def collect(self, asset_id: str) -> B:
        """
        Run one collection for an asset.

        Returns:
            The domain's SignalBundle

        Raises:
            CollectorError: on any failure of this domain
        """
        try:
            bundle = await self.fetch_signals(asset_id)

        except CollectorError:
            raise

        except RateLimitExhaustedError as e:
            self._logger.warning(f"Signal unavailable for {asset_id}: {e}")
            raise CollectorError(
                f"{self.domain_name} signal unavailable: {e}",
                domain=self.domain_name,
                asset_id=asset_id,
                cause=e,
            ) from e

        except (KeyError, TypeError, ValueError, IndexError) as e:
            self._logger.warning(f"Parse error for {asset_id}: {e}")
            raise CollectorError(
                f"Parse error: {e}",
                domain=self.domain_name,
                asset_id=asset_id,
                cause=e,
            ) from e

        except Exception as e:
            self._logger.exception(f"Unexpected error collecting {self.domain_name} for {asset_id}")
            raise CollectorError(
                f"Unexpected error: {e}",
                domain=self.domain_name,
                asset_id=asset_id,
                cause=e,
            ) from e

        self._logger.debug(f"Collected {self.domain_name} for {asset_id}: {bundle}")
        return bundle

    # =========================================================
    # HTTP HELPERS
    # =========================================================

    async def _get_json(
        self,
        url: str,
        asset_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET through the limiter and decode JSON; non-2xx raises CollectorError."""
        if self._limiter is None:
            raise CollectorError(
                "No rate limiter configured",
                domain=self.domain_name,
                asset_id=asset_id,
            )

        options: Dict[str, Any] = {}
        if params:
            options["params"] = params
        if headers:
            options["headers"] = headers

        response = await self._limiter.enqueue(url, **options)

        if not response.ok:
            raise CollectorError(
                f"HTTP {response.status} from {url}",
                domain=self.domain_name,
                asset_id=asset_id,
                status_code=response.status,
            )

        return response.json()


# =============================================================
# PARSING HELPERS
# =============================================================

def to_float(value: Any) -> Optional[float]:
    """Parse a numeric field; None for missing or unparseable values."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


__all__ = [
    "BaseSignalCollector",
    "to_float",
    "clamp",
]
