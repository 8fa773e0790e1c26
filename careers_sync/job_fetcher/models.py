from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

RawJobData = Dict[str, Any]

JobSource = Literal["drivehr", "manual", "webhook", "github-actions", "automated"]
FetchMethod = Literal["html", "browser", "none"]

DRIVEHR_BASE_URL = "https://drivehris.app"


@dataclass(frozen=True)
class SourceConfig:
    """Where to look for job postings for one company."""

    company_id: str
    careers_url: str = ""
    api_base_url: str = ""
    timeout_ms: Optional[int] = None
    retries: Optional[int] = None

    def careers_page_url(self) -> str:
        if self.careers_url:
            return self.careers_url
        return f"{DRIVEHR_BASE_URL}/careers/{self.company_id}/list"


@dataclass(frozen=True)
class NormalizedJob:
    """Canonical job record handed to the delivery layer."""

    id: str
    title: str
    department: str
    location: str
    type: str
    description: str
    posted_date: str
    apply_url: str
    source: JobSource
    raw_data: RawJobData = field(default_factory=dict)
    processed_at: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "department": self.department,
            "location": self.location,
            "type": self.type,
            "description": self.description,
            "postedDate": self.posted_date,
            "applyUrl": self.apply_url,
            "source": self.source,
            "rawData": dict(self.raw_data),
            "processedAt": self.processed_at,
        }


@dataclass(frozen=True)
class JobFetchResult:
    """Outcome of one orchestrated fetch."""

    jobs: Tuple[NormalizedJob, ...]
    method: FetchMethod
    success: bool
    fetched_at: str
    total_count: int
    message: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "jobs": [job.as_dict() for job in self.jobs],
            "method": self.method,
            "success": self.success,
            "fetchedAt": self.fetched_at,
            "totalCount": self.total_count,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class JobSyncResult:
    success: bool
    synced_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)
    message: Optional[str] = None
    processed_at: Optional[str] = None
