# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Store settings read from the environment."""

import logging
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator

NON_CLUSTERED_INSTANCE_ID = "NON_CLUSTERED"


class StoreSettings(BaseModel):
    """Runtime settings for a RAMJobStore.

    ``index_order`` selects how waiting triggers are ordered: by next fire
    time (then priority, then key) or by key string alone.
    """

    model_config = ConfigDict(frozen=True)

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    index_order: Literal["fire_time", "key"] = "fire_time"
    instance_id: str = NON_CLUSTERED_INSTANCE_ID

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreSettings":
        """Build settings from ``JOBSTORE_*`` environment variables.

        :param environ: Mapping to read, defaults to ``os.environ``.
        :returns: Validated settings.
        """
        env = os.environ if environ is None else environ
        return cls(
            log_level=env.get("JOBSTORE_LOG_LEVEL", "INFO"),
            log_format=env.get("JOBSTORE_LOG_FORMAT", "console"),
            index_order=env.get("JOBSTORE_INDEX_ORDER", "fire_time"),
            instance_id=env.get("JOBSTORE_INSTANCE_ID", NON_CLUSTERED_INSTANCE_ID),
        )
