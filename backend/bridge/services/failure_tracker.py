from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

KEY_SEPARATOR = ":"

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def failure_key(workflow_id: int, branch: str) -> str:
    return f"{workflow_id}{KEY_SEPARATOR}{branch}"

def split_failure_key(key: str) -> Tuple[str, str]:
    # workflow ids are numeric, so the first colon always ends the id
    workflow_id, _, branch = key.partition(KEY_SEPARATOR)
    return workflow_id, branch

def format_duration(duration: timedelta) -> str:
    total_minutes = max(int(duration.total_seconds() // 60), 0)
    days, rem = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem, 60)
    if days >= 1:
        return f"{days}d {hours}h"
    if hours >= 1:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"

class BuildState(str, Enum):
    CLEAR = "clear"
    FAILING = "failing"

@dataclass(frozen=True)
class FailureRecord:
    workflow_name: str
    html_url: str
    repo_full_name: str
    failed_at: datetime

class FailureTracker:
    """
    In-memory record of builds that are currently failing, one per
    (workflow id, branch).

    Every public method takes the lock for its whole read-modify-write, so a
    concurrent delivery for the same key always sees either the state before
    or after another delivery's change.
    """

    def __init__(
        self,
        retention: timedelta = timedelta(days=7),
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.retention = retention
        self._records: Dict[str, FailureRecord] = {}
        self._lock = threading.Lock()
        self._now = now_fn or _now_utc

    def now(self) -> datetime:
        return self._now()

    def state(self, workflow_id: int, branch: str) -> BuildState:
        with self._lock:
            if failure_key(workflow_id, branch) in self._records:
                return BuildState.FAILING
            return BuildState.CLEAR

    def record_failure(
        self,
        workflow_id: int,
        branch: str,
        workflow_name: str,
        html_url: str,
        repo_full_name: str,
    ) -> BuildState:
        """Mark the key as failing and return the state it was in before."""
        key = failure_key(workflow_id, branch)
        record = FailureRecord(
            workflow_name=workflow_name,
            html_url=html_url,
            repo_full_name=repo_full_name,
            failed_at=self._now(),
        )
        with self._lock:
            previous = BuildState.FAILING if key in self._records else BuildState.CLEAR
            self._records[key] = record
        return previous

    def record_success(self, workflow_id: int, branch: str) -> Optional[FailureRecord]:
        """
        Clear the key and return the failure it recovered from, or None when
        there was nothing to recover from inside the retention window.
        """
        key = failure_key(workflow_id, branch)
        with self._lock:
            record = self._records.pop(key, None)
        if record is None:
            return None
        if self._now() - record.failed_at > self.retention:
            return None
        return record

    def evict(self) -> int:
        with self._lock:
            return self._evict_locked(self._now())

    def _evict_locked(self, now: datetime) -> int:
        expired = [k for k, r in self._records.items() if now - r.failed_at > self.retention]
        for key in expired:
            del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get_build_status(self) -> Dict[str, Any]:
        now = self._now()
        with self._lock:
            evicted = self._evict_locked(now)
            items = list(self._records.items())
        if evicted:
            print(f"[tracker] evicted {evicted} expired failures")

        items.sort(key=lambda kv: kv[1].failed_at, reverse=True)
        failed_builds: List[Dict[str, Any]] = []
        by_branch: Counter = Counter()
        for key, record in items:
            workflow_id, branch = split_failure_key(key)
            by_branch[branch] += 1
            failed_builds.append({
                "workflowId": int(workflow_id),
                "branch": branch,
                "failedAt": record.failed_at.isoformat(),
                "failedFor": format_duration(now - record.failed_at),
                "workflowName": record.workflow_name,
                "htmlUrl": record.html_url,
                "repoFullName": record.repo_full_name,
            })

        days = self.retention.total_seconds() / 86400
        return {
            "failedBuilds": failed_builds,
            "stats": {
                "totalFailedBuilds": len(failed_builds),
                "failedByBranch": dict(by_branch),
                "trackingDurationDays": int(days) if days.is_integer() else round(days, 2),
            },
        }
