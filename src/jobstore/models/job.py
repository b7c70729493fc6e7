# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Job detail model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from src.jobstore.models.datamap import JobDataMap
from src.jobstore.models.keys import JobKey

if TYPE_CHECKING:
    from src.jobstore.models.builders import JobBuilder


class JobDetail(BaseModel):
    """Detail properties of a schedulable job.

    A durable job stays stored after its last trigger is removed.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: JobKey
    description: str = ""
    durable: bool = False
    data_map: JobDataMap = Field(default_factory=JobDataMap)

    def __hash__(self) -> int:
        return hash(self.key)

    def clone(self) -> "JobDetail":
        """Return a copy whose data map is independent of this one.

        :returns: Cloned job detail.
        :rtype: JobDetail
        """
        return self.model_copy(update={"data_map": self.data_map.clone()})

    def job_builder(self) -> "JobBuilder":
        """Describe how to rebuild an equivalent job detail."""
        from src.jobstore.models.builders import JobBuilder

        return JobBuilder(
            key=self.key,
            description=self.description,
            durable=self.durable,
            job_data=self.data_map.to_dict(),
        )
