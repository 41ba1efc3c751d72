"""Aggregate download statistics collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from filestore.exceptions import ConfigurationError
from filestore.settings import Settings


@dataclass(frozen=True)
class AggregateStats:
    downloads: int = 0
    unique_packages: int = 0
    total_packages: int = 0


class AggregateStatsService(Protocol):
    async def get_aggregate_stats(self) -> AggregateStats | None:
        ...


class NullAggregateStatsService:
    """Stats service for deployments without a statistics store; always reports nothing."""

    async def get_aggregate_stats(self) -> AggregateStats | None:
        return None


def build_aggregate_stats_service(settings: Settings) -> AggregateStatsService:
    if settings.stats.backend == "null":
        return NullAggregateStatsService()
    raise ConfigurationError(f"Unknown stats backend: {settings.stats.backend}", {"setting": "stats.backend"})


__all__ = [
    "AggregateStats",
    "AggregateStatsService",
    "NullAggregateStatsService",
    "build_aggregate_stats_service",
]
