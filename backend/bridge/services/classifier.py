from datetime import timedelta
from typing import Iterable, Optional, Tuple, Union

from ..types.events import (
    GitHubEvent,
    PullRequestEvent,
    PushEvent,
    WorkflowRunEvent,
    decode_event,
)
from ..types.message import OutboundMessage
from .failure_tracker import BuildState, FailureTracker

DEFAULT_BRANCHES = ("main", "master", "prod")
PR_ACTIONS = {"opened", "closed", "reopened"}

def _pluralize(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"

def pull_request_style(action: str, merged: bool) -> Tuple[str, str]:
    """Emoji and verb for a pull request action."""
    if action == "opened":
        return ":pr-open:", "opened"
    if action == "reopened":
        return ":pr-open:", "reopened"
    if merged:
        return ":pr-merged:", "merged"
    if action == "closed":
        return ":pr-closed:", "closed"
    return ":info:", action

def format_push(event: PushEvent) -> str:
    first = event.commits[0]
    actor = first.author_name or first.author_username or event.sender_login
    branch = event.branch
    header = (
        f"*{actor}* pushed {_pluralize(len(event.commits), 'commit')} to "
        f"<{event.repository_url}/tree/{branch}|{event.repository_full_name}:{branch}>"
    )
    if event.compare_url:
        header += f" (<{event.compare_url}|compare>)"
    lines = [f"• {c.short_sha}: {c.title}" for c in event.commits]
    return "\n".join([f":rocket: {header}"] + lines)

def format_pull_request(event: PullRequestEvent) -> str:
    emoji, verb = pull_request_style(event.action, event.merged is True)
    return (
        f"{emoji} Pull Request {verb}: <{event.url}|#{event.number} {event.title}> "
        f"by *{event.user_login}* in <{event.repository_url}|{event.repository_full_name}>"
    )

def _run_details(run: WorkflowRunEvent) -> str:
    return (
        f"<{run.html_url}|{run.name} #{run.run_number}> "
        f"in <{run.repository_url}|{run.repository_full_name}> on `{run.head_branch}` "
        f"(<{run.repository_url}/commit/{run.head_sha}|{run.short_sha}>) by *{run.actor_login}*"
    )

def format_build_failed(run: WorkflowRunEvent, again: bool) -> str:
    suffix = " again" if again else ""
    return f":x: build failed{suffix}: {_run_details(run)}"

def format_build_fixed(run: WorkflowRunEvent) -> str:
    return f":white_check_mark: build fixed: {_run_details(run)}"

class EventClassifier:
    def __init__(
        self,
        tracker: FailureTracker,
        supported_branches: Iterable[str] = DEFAULT_BRANCHES,
        stale_run_age: Optional[timedelta] = None,
    ):
        self.tracker = tracker
        self.supported_branches = frozenset(supported_branches)
        self.stale_run_age = stale_run_age

    def classify(
        self,
        event_type: Optional[str],
        raw_payload: Union[str, bytes],
        channel: Optional[str] = None,
    ) -> Optional[OutboundMessage]:
        """
        Turn one webhook delivery into a chat message, or None when the event
        is not worth a notification. Raises PayloadParseError on bad payloads.
        """
        event = decode_event(event_type, raw_payload)
        return self.classify_event(event, channel)

    def classify_event(self, event: GitHubEvent, channel: Optional[str] = None) -> Optional[OutboundMessage]:
        if isinstance(event, PushEvent):
            return self._push(event, channel)
        if isinstance(event, PullRequestEvent):
            return self._pull_request(event, channel)
        if isinstance(event, WorkflowRunEvent):
            return self._workflow_run(event, channel)
        print(f"[classifier] ignoring unsupported event type: {event.event_type}")
        return None

    def _push(self, event: PushEvent, channel: Optional[str]) -> Optional[OutboundMessage]:
        if event.branch not in self.supported_branches:
            print(f"[classifier] skip push to {event.repository_full_name}:{event.branch}")
            return None
        if not event.commits:
            print(f"[classifier] skip push without commits to {event.repository_full_name}:{event.branch}")
            return None
        return OutboundMessage(text=format_push(event), channel=channel, username=event.sender_login)

    def _pull_request(self, event: PullRequestEvent, channel: Optional[str]) -> Optional[OutboundMessage]:
        if event.action not in PR_ACTIONS:
            print(f"[classifier] skip pull_request action: {event.action}")
            return None
        return OutboundMessage(text=format_pull_request(event), channel=channel, username=event.user_login)

    def _workflow_run(self, run: WorkflowRunEvent, channel: Optional[str]) -> Optional[OutboundMessage]:
        try:
            return self._track_workflow_run(run, channel)
        finally:
            self.tracker.evict()

    def _track_workflow_run(self, run: WorkflowRunEvent, channel: Optional[str]) -> Optional[OutboundMessage]:
        label = f"{run.name} #{run.run_number}"
        if run.status != "completed":
            print(f"[classifier] skip {label}: status={run.status}")
            return None
        if run.head_branch not in self.supported_branches:
            print(f"[classifier] skip {label}: branch={run.head_branch}")
            return None
        if self.stale_run_age is not None and self.tracker.now() - run.created_at > self.stale_run_age:
            print(f"[classifier] skip {label}: created_at={run.created_at.isoformat()} is stale")
            return None

        if run.conclusion == "failure":
            previous = self.tracker.record_failure(
                run.workflow_id,
                run.head_branch,
                workflow_name=run.name,
                html_url=run.html_url,
                repo_full_name=run.repository_full_name,
            )
            print(f"[classifier] build failed: {label} ({previous.value} -> failing)")
            return OutboundMessage(
                text=format_build_failed(run, again=previous is BuildState.FAILING),
                channel=channel,
                username=run.actor_login,
            )

        if run.conclusion == "success":
            recovered = self.tracker.record_success(run.workflow_id, run.head_branch)
            if recovered is None:
                print(f"[classifier] {label} succeeded without a tracked failure")
                return None
            print(f"[classifier] build fixed: {label}")
            return OutboundMessage(text=format_build_fixed(run), channel=channel, username=run.actor_login)

        print(f"[classifier] skip {label}: conclusion={run.conclusion}")
        return None
