"""
Pydantic Settings — deployment-level configuration loaded from environment variables.

These values form the second layer of the option merge (after the library
defaults, before type-level and call-level options).  Only values that are
actually set contribute to the merge.
"""

from typing import Any

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ── Processing ────────────────────────────
    ATTACHE_VERSIONS: list[str] | None = None
    ATTACHE_ASYNC: bool | None = None
    ATTACHE_TIMEOUT: int | None = None          # milliseconds

    # ── Storage ───────────────────────────────
    ATTACHE_STORAGE: str | None = None          # "filesystem" | "s3"
    ATTACHE_STORAGE_PATH: str | None = None
    ATTACHE_BASE_URI: str | None = None

    # ── S3 ────────────────────────────────────
    ATTACHE_S3_BUCKET: str | None = None
    ATTACHE_S3_REGION: str | None = None
    ATTACHE_S3_ENDPOINT_URL: str | None = None

    model_config = {"env_file": [".env"], "extra": "ignore"}

    def deployment_options(self) -> dict[str, Any]:
        """Project the set values onto the option schema."""
        opts: dict[str, Any] = {}
        if self.ATTACHE_VERSIONS is not None:
            opts["versions"] = self.ATTACHE_VERSIONS
        if self.ATTACHE_ASYNC is not None:
            opts["concurrent"] = self.ATTACHE_ASYNC
        if self.ATTACHE_TIMEOUT is not None:
            opts["timeout"] = self.ATTACHE_TIMEOUT
        if self.ATTACHE_STORAGE is not None:
            opts["storage"] = self.ATTACHE_STORAGE

        storage_opts = {
            key: value
            for key, value in (
                ("path", self.ATTACHE_STORAGE_PATH),
                ("base_uri", self.ATTACHE_BASE_URI),
                ("bucket", self.ATTACHE_S3_BUCKET),
                ("region", self.ATTACHE_S3_REGION),
                ("endpoint_url", self.ATTACHE_S3_ENDPOINT_URL),
            )
            if value is not None
        }
        if storage_opts:
            opts["storage_opts"] = storage_opts
        return opts


settings = Settings()
