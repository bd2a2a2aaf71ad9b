import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import PayloadParseError

BRANCH_REF_PREFIX = "refs/heads/"

@dataclass(frozen=True)
class Commit:
    id: str
    message: str
    url: str
    author_name: Optional[str] = None
    author_username: Optional[str] = None

    @property
    def short_sha(self) -> str:
        return self.id[:7]

    @property
    def title(self) -> str:
        lines = self.message.splitlines()
        return lines[0] if lines else ""

@dataclass(frozen=True)
class PushEvent:
    ref: str
    commits: Tuple[Commit, ...]
    repository_full_name: str
    repository_url: str
    sender_login: str
    compare_url: Optional[str] = None

    @property
    def branch(self) -> str:
        if self.ref.startswith(BRANCH_REF_PREFIX):
            return self.ref[len(BRANCH_REF_PREFIX):]
        return self.ref

@dataclass(frozen=True)
class PullRequestEvent:
    action: str
    merged: Optional[bool]
    number: int
    title: str
    url: str
    user_login: str
    repository_full_name: str
    repository_url: str

@dataclass(frozen=True)
class WorkflowRunEvent:
    workflow_id: int
    run_number: int
    name: str
    status: str
    conclusion: Optional[str]
    head_branch: Optional[str]
    head_sha: str
    html_url: str
    created_at: datetime
    actor_login: str
    repository_full_name: str
    repository_url: str

    @property
    def short_sha(self) -> str:
        return self.head_sha[:7]

@dataclass(frozen=True)
class UnknownEvent:
    event_type: Optional[str]

GitHubEvent = Union[PushEvent, PullRequestEvent, WorkflowRunEvent, UnknownEvent]

_MISSING = object()

def _dig(data: Any, path: Tuple[str, ...]) -> Any:
    current = data
    for key in path:
        if not isinstance(current, dict):
            return _MISSING
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return _MISSING
    return current

def _require(data: Dict[str, Any], *path: str) -> Any:
    value = _dig(data, path)
    if value is _MISSING or value is None:
        raise PayloadParseError(f"missing required field '{'.'.join(path)}'")
    return value

def _optional(data: Dict[str, Any], *path: str) -> Any:
    value = _dig(data, path)
    return None if value is _MISSING else value

def _require_str(data: Dict[str, Any], *path: str) -> str:
    value = _require(data, *path)
    if not isinstance(value, str):
        raise PayloadParseError(f"field '{'.'.join(path)}' must be a string")
    return value

def _require_int(data: Dict[str, Any], *path: str) -> int:
    value = _require(data, *path)
    # bool is an int subclass but never a valid id
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadParseError(f"field '{'.'.join(path)}' must be an integer")
    return value

def parse_timestamp(value: str) -> datetime:
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise PayloadParseError(f"invalid timestamp '{value}'") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def _load_json(raw_payload: Union[str, bytes]) -> Dict[str, Any]:
    try:
        data = json.loads(raw_payload)
    except (ValueError, UnicodeDecodeError) as e:
        raise PayloadParseError(f"malformed JSON payload: {e}") from e
    if not isinstance(data, dict):
        raise PayloadParseError("payload must be a JSON object")
    return data

def _parse_commit(data: Any) -> Commit:
    if not isinstance(data, dict):
        raise PayloadParseError("commit entries must be JSON objects")
    return Commit(
        id=_require_str(data, "id"),
        message=_require_str(data, "message"),
        url=_require_str(data, "url"),
        author_name=_optional(data, "author", "name"),
        author_username=_optional(data, "author", "username"),
    )

def parse_push(data: Dict[str, Any]) -> PushEvent:
    commits = _optional(data, "commits") or []
    if not isinstance(commits, list):
        raise PayloadParseError("field 'commits' must be a list")
    return PushEvent(
        ref=_require_str(data, "ref"),
        commits=tuple(_parse_commit(c) for c in commits),
        repository_full_name=_require_str(data, "repository", "full_name"),
        repository_url=_require_str(data, "repository", "html_url"),
        sender_login=_require_str(data, "sender", "login"),
        compare_url=_optional(data, "compare"),
    )

def parse_pull_request(data: Dict[str, Any]) -> PullRequestEvent:
    merged = _optional(data, "pull_request", "merged")
    return PullRequestEvent(
        action=_require_str(data, "action"),
        merged=merged if isinstance(merged, bool) else None,
        number=_require_int(data, "pull_request", "number"),
        title=_require_str(data, "pull_request", "title"),
        url=_require_str(data, "pull_request", "html_url"),
        user_login=_require_str(data, "pull_request", "user", "login"),
        repository_full_name=_require_str(data, "repository", "full_name"),
        repository_url=_require_str(data, "repository", "html_url"),
    )

def parse_workflow_run(data: Dict[str, Any]) -> WorkflowRunEvent:
    return WorkflowRunEvent(
        workflow_id=_require_int(data, "workflow_run", "workflow_id"),
        run_number=_require_int(data, "workflow_run", "run_number"),
        name=_require_str(data, "workflow_run", "name"),
        status=_require_str(data, "workflow_run", "status"),
        conclusion=_optional(data, "workflow_run", "conclusion"),
        head_branch=_optional(data, "workflow_run", "head_branch"),
        head_sha=_require_str(data, "workflow_run", "head_sha"),
        html_url=_require_str(data, "workflow_run", "html_url"),
        created_at=parse_timestamp(_require_str(data, "workflow_run", "created_at")),
        actor_login=_require_str(data, "workflow_run", "actor", "login"),
        repository_full_name=_require_str(data, "repository", "full_name"),
        repository_url=_require_str(data, "repository", "html_url"),
    )

PARSERS = {
    "push": parse_push,
    "pull_request": parse_pull_request,
    "workflow_run": parse_workflow_run,
}

def decode_event(event_type: Optional[str], raw_payload: Union[str, bytes]) -> GitHubEvent:
    """
    Decode a webhook body into the variant selected by the X-GitHub-Event header.

    Unsupported or absent event types decode to UnknownEvent without looking at
    the payload. Raises PayloadParseError for malformed supported payloads.
    """
    parser = PARSERS.get(event_type or "")
    if parser is None:
        return UnknownEvent(event_type=event_type)
    return parser(_load_json(raw_payload))
