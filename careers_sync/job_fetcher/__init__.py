"""Job acquisition and normalization.

This package provides:
- Acquisition strategies (plain HTML fetch, headless browser rendering)
- A fetch orchestrator that falls through strategies in priority order
- Field extraction, description sanitizing and normalization into NormalizedJob
- Delivery sinks (signed webhook, JSON artifact, stdout)
"""

from careers_sync.job_fetcher.models import JobFetchResult, JobSyncResult, NormalizedJob, RawJobData, SourceConfig

__all__ = ["JobFetchResult", "JobSyncResult", "NormalizedJob", "RawJobData", "SourceConfig"]
