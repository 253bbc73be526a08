"""
Core Module - Exceptions.

============================================================
ERROR TAXONOMY
============================================================
Each class marks the scope at which the pipeline recovers
from the failure:

SignalPipelineError (base)
├── ConfigurationError           -> startup refuses to run
├── RateLimitExhaustedError      -> collector reports "unavailable"
├── CollectorError               -> one domain's fields stay None
├── MandatorySignalMissingError  -> one asset skipped, run continues
└── PersistenceError             -> appended to the run's error list

An article matching no keyword is not an error; it is
classified as plain "news".

============================================================
"""

import logging
from typing import Any, Dict, Optional


class SignalPipelineError(Exception):
    """
    Root of the pipeline's exceptions.

    `context` holds structured detail for log lines. `log_level`
    is the level the orchestrator uses when it swallows the error
    at its recovery scope.
    """

    log_level: int = logging.WARNING

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.cause = cause
        if cause is not None:
            self.context.setdefault("cause", f"{type(cause).__name__}: {cause}")

    def __str__(self) -> str:
        return self.message


class ConfigurationError(SignalPipelineError):
    """Bad or missing setting, detected before any request is made."""

    log_level = logging.ERROR

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.config_key = config_key
        if config_key:
            self.context["config_key"] = config_key


class RateLimitExhaustedError(SignalPipelineError):
    """
    A single request used up its retry budget.

    Delivered to the one caller that owns the request. Requests
    queued behind it on the same host keep draining.
    """

    def __init__(
        self,
        url: str,
        host_key: str,
        retries: int,
        last_status: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            f"{host_key}: gave up on {url} after {retries} retries "
            f"(last status {last_status})",
            **kwargs,
        )
        self.url = url
        self.host_key = host_key
        self.retries = retries
        self.last_status = last_status
        self.context.update(host_key=host_key, retries=retries, last_status=last_status)


class CollectorError(SignalPipelineError):
    """One signal domain could not be fetched or parsed."""

    def __init__(
        self,
        message: str,
        domain: str,
        asset_id: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.domain = domain
        self.asset_id = asset_id
        self.status_code = status_code
        self.context.update(domain=domain, asset_id=asset_id, status_code=status_code)


class MandatorySignalMissingError(SignalPipelineError):
    """No market data for the asset, so no snapshot can be built."""

    log_level = logging.ERROR

    def __init__(self, asset_id: str, reason: Optional[str] = None, **kwargs):
        message = f"Failed to fetch market data for {asset_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message, **kwargs)
        self.asset_id = asset_id
        self.context["asset_id"] = asset_id


class PersistenceError(SignalPipelineError):
    """The snapshot store rejected a read or write."""

    log_level = logging.ERROR

    def __init__(self, message: str, table: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.table = table
        if table:
            self.context["table"] = table


__all__ = [
    "SignalPipelineError",
    "ConfigurationError",
    "RateLimitExhaustedError",
    "CollectorError",
    "MandatorySignalMissingError",
    "PersistenceError",
]
