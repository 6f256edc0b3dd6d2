"""
Result records produced by the engagement engine.
All records are frozen; sequences are tuples and mappings are read-only views, so results are safe to share and serialize.
"""

from dataclasses import dataclass, fields, is_dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple


@dataclass(frozen=True)
class DailyActivity:
    """Raw per-day tallies for one (member, issue) pair."""

    date: str
    comment_count: int
    pr_activity_count: int
    author_activity_count: int
    review_activity_count: int


@dataclass(frozen=True)
class IssueEngagement:
    """Engagement of one member on one issue, with context-switch adjusted credits."""

    issue_id: str
    comm_days: int
    dev_days: int
    author_days: int
    reviewer_days: int
    comm_day_credits: float
    dev_day_credits: float
    activity_details: Tuple[DailyActivity, ...]
    total_comments: int
    total_pr_activities: int
    total_author_activities: int
    total_review_activities: int


@dataclass(frozen=True)
class AorActivity:
    aor_id: str
    aor_name: str
    activity_days: int


@dataclass(frozen=True)
class TeamMemberEngagement:
    """Member-wide engagement; day counts are deduplicated across issues."""

    username: str
    total_active_days: int
    comm_days: int
    dev_days: int
    author_days: int
    reviewer_days: int
    comm_day_credits: float
    dev_day_credits: float
    top_aors: Tuple[AorActivity, ...]
    issue_engagements: Mapping[str, IssueEngagement]


@dataclass(frozen=True)
class IssueTeamEffort:
    """Team effort on one issue, counted as distinct (member, day) pairs per channel."""

    issue_id: str
    issue_number: int
    repository: str
    title: str
    url: str
    state: str
    updated_at: Optional[str]
    total_effort_days: int
    commenter_days: int
    author_days: int
    reviewer_days: int
    contributors: Tuple[str, ...]


@dataclass(frozen=True)
class PRLink:
    number: int
    url: str


@dataclass(frozen=True)
class CommentDay:
    date: str
    comment_id: str
    comment_url: str


@dataclass(frozen=True)
class PRDay:
    date: str
    pr_links: Tuple[PRLink, ...]


@dataclass(frozen=True)
class MemberIssueContribution:
    """Auditable activity trail for one member on one issue."""

    username: str
    commenter_days: int
    author_days: int
    reviewer_days: int
    total_days: int
    comment_activity: Tuple[CommentDay, ...]
    author_activity: Tuple[PRDay, ...]
    reviewer_activity: Tuple[PRDay, ...]


@dataclass(frozen=True)
class EngagementResults:
    """Everything computed from one snapshot. Never mixed with results of another fingerprint."""

    fingerprint: str
    team_engagement: Mapping[str, TeamMemberEngagement]
    issue_efforts: Tuple[IssueTeamEffort, ...]
    issue_breakdowns: Mapping[str, Tuple[MemberIssueContribution, ...]]


def frozen_mapping(data: dict) -> Mapping:
    return MappingProxyType(dict(data))


def to_dict(record: Any) -> Any:
    """Convert result records (and nested mappings/tuples of them) into JSON-safe primitives."""
    if is_dataclass(record) and not isinstance(record, type):
        return {f.name: to_dict(getattr(record, f.name)) for f in fields(record)}
    if isinstance(record, Mapping):
        return {str(k): to_dict(v) for k, v in record.items()}
    if isinstance(record, (list, tuple)):
        return [to_dict(v) for v in record]
    return record
