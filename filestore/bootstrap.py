from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from filestore.logging_config import setup_logging
from filestore.settings import Settings, get_settings
from filestore.stats import AggregateStatsService, build_aggregate_stats_service
from filestore.storage.service import FileStorageService, build_file_storage_service


@dataclass
class Services:
    storage: FileStorageService
    stats: AggregateStatsService


def create_services(settings: Settings | None = None) -> Services:
    settings = settings or get_settings()

    # LOG_LEVEL / JSON_LOGGING / LOG_FILE win over the YAML values
    json_env = os.getenv("JSON_LOGGING")
    log_file = os.getenv("LOG_FILE")
    setup_logging(
        level=os.getenv("LOG_LEVEL", settings.logging.level),
        json_format=json_env.lower() in {"true", "1", "yes"} if json_env else settings.logging.json_format,
        log_file=Path(log_file) if log_file else settings.logging.log_file,
    )

    services = Services(
        storage=build_file_storage_service(settings),
        stats=build_aggregate_stats_service(settings),
    )
    logger.info(
        "File storage ready: backend={backend} bucket={bucket}",
        backend=settings.storage.backend,
        bucket=settings.storage.bucket or "-",
    )
    return services


__all__ = ["Services", "create_services"]
