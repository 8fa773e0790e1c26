from __future__ import annotations

import abc
from typing import List

from careers_sync.job_fetcher.http import HttpClient
from careers_sync.job_fetcher.models import FetchMethod, RawJobData, SourceConfig


class StrategyError(RuntimeError):
    """A strategy could not produce data for this source."""


class BaseFetchStrategy(abc.ABC):
    """Acquisition strategy interface: capability check -> raw records."""

    @property
    @abc.abstractmethod
    def name(self) -> FetchMethod:
        raise NotImplementedError

    @abc.abstractmethod
    def can_handle(self, config: SourceConfig) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def fetch_jobs(self, config: SourceConfig, http: HttpClient) -> List[RawJobData]:
        raise NotImplementedError
