from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class DbConfig:
    url: str
    replica_urls: tuple[str, ...] = ()
    dialect: str | None = None
    pool_pre_ping: bool = True
    log_queries: bool = False
    log_level: int = logging.DEBUG
    metrics: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.url:
            raise ValueError("url must be a non-empty SQLAlchemy database URL")
        self.replica_urls = tuple(self.replica_urls)
        if any(not url for url in self.replica_urls):
            raise ValueError("replica_urls must not contain empty URLs")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = "ROWMAPPER_",
    ) -> "DbConfig":
        """
        Build a DbConfig from environment variables.

        Reads <prefix>DB_URL (required), <prefix>REPLICA_URLS (comma separated),
        <prefix>DIALECT, <prefix>LOG_QUERIES and <prefix>METRICS.
        """
        env = os.environ if environ is None else environ

        url = env.get(f"{prefix}DB_URL", "")
        if not url:
            raise ValueError(f"{prefix}DB_URL is not set")

        replicas = tuple(
            part.strip()
            for part in env.get(f"{prefix}REPLICA_URLS", "").split(",")
            if part.strip()
        )
        return cls(
            url=url,
            replica_urls=replicas,
            dialect=env.get(f"{prefix}DIALECT") or None,
            log_queries=env.get(f"{prefix}LOG_QUERIES", "").lower() in _TRUE_VALUES,
            metrics=env.get(f"{prefix}METRICS", "").lower() in _TRUE_VALUES,
        )
