"""S3 client construction and credential precedence."""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator

import boto3
from botocore.config import Config
from loguru import logger

from filestore.settings import StorageSettings


class CredentialStrategy(str, Enum):
    EXPLICIT_WITH_REGION = "explicit_with_region"
    EXPLICIT = "explicit"
    REGION_ONLY = "region_only"
    AMBIENT = "ambient"


def resolve_credential_strategy(
    access_key_id: str | None,
    secret_access_key: str | None,
    region: str | None,
) -> CredentialStrategy:
    """Pick how the client gets its credentials and region.

    Checked in order, first match wins: both keys and a region, both keys,
    a region alone, then the default AWS discovery chain for everything.
    A lone access key or secret key is treated as no explicit credentials.
    """
    has_keys = bool(access_key_id) and bool(secret_access_key)
    if has_keys and region:
        return CredentialStrategy.EXPLICIT_WITH_REGION
    if has_keys:
        return CredentialStrategy.EXPLICIT
    if region:
        return CredentialStrategy.REGION_ONLY
    return CredentialStrategy.AMBIENT


def build_session_kwargs(settings: StorageSettings) -> tuple[CredentialStrategy, dict[str, str]]:
    access_key_id = settings.aws_access_key_id
    secret_access_key = settings.aws_secret_access_key
    region = settings.region
    strategy = resolve_credential_strategy(access_key_id, secret_access_key, region)

    if strategy is CredentialStrategy.EXPLICIT_WITH_REGION:
        kwargs = {
            "aws_access_key_id": access_key_id,
            "aws_secret_access_key": secret_access_key,
            "region_name": region,
        }
    elif strategy is CredentialStrategy.EXPLICIT:
        kwargs = {
            "aws_access_key_id": access_key_id,
            "aws_secret_access_key": secret_access_key,
        }
    elif strategy is CredentialStrategy.REGION_ONLY:
        kwargs = {"region_name": region}
    else:
        kwargs = {}
    return strategy, kwargs


def build_client_config(settings: StorageSettings) -> Config:
    addressing_style = "path" if settings.use_path_style else "auto"
    return Config(
        signature_version="s3v4",
        s3={"addressing_style": addressing_style},
        connect_timeout=settings.connect_timeout_seconds,
        read_timeout=settings.read_timeout_seconds,
        # total_max_attempts counts the first request; 1 means a single try
        retries={"total_max_attempts": settings.max_attempts, "mode": "standard"},
    )


class S3ClientFactory:
    """Builds one boto3 S3 client per storage operation."""

    def __init__(
        self,
        settings: StorageSettings,
        session_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.settings = settings
        self._session_factory = session_factory or boto3.session.Session

    def create(self) -> Any:
        strategy, session_kwargs = build_session_kwargs(self.settings)
        logger.debug("Creating S3 client using {strategy} credentials", strategy=strategy.value)
        session = self._session_factory(**session_kwargs)

        client_kwargs: dict[str, Any] = {"config": build_client_config(self.settings)}
        if self.settings.endpoint_url:
            client_kwargs["endpoint_url"] = self.settings.endpoint_url
        return session.client("s3", **client_kwargs)

    @contextmanager
    def client(self) -> Iterator[Any]:
        client = self.create()
        try:
            yield client
        finally:
            close = getattr(client, "close", None)
            if callable(close):
                close()


__all__ = [
    "CredentialStrategy",
    "S3ClientFactory",
    "build_client_config",
    "build_session_kwargs",
    "resolve_credential_strategy",
]
