"""
Dashboard insights derived from the same snapshot: stalled and blocked issues, replies owed to
outside commenters, per-member activity stats and keyword-based expertise.
Time-dependent checks take an explicit `now` so results stay reproducible.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from normalize.models import AreaOfResponsibility, Comment, Issue
from normalize.util import InvalidTimestamp, id_order_key, parse_timestamp
from correlate.models import IssueTeamEffort

logger = logging.getLogger(__name__)

BLOCKED_LABELS = ('blocked', 'waiting-for-customer', 'needs-info', 'on-hold')
BLOCKED_KEYWORDS = ('blocked', 'waiting on', 'pending')
EPOCH = datetime.min.replace(tzinfo=timezone.utc)

EFFORT_SORT_KEYS = {
    'total_effort_days': lambda e: e.total_effort_days,
    'commenter_days': lambda e: e.commenter_days,
    'author_days': lambda e: e.author_days,
    'reviewer_days': lambda e: e.reviewer_days,
    'contributors': lambda e: len(e.contributors),
    'updated_at': lambda e: _when(e.updated_at) or EPOCH,
}


class StallInsights:
    def __init__(self, stale: List[Issue], blocked: List[Issue]):
        self.stale = stale
        self.blocked = blocked


class IssueStatus:
    def __init__(self, is_stalled: bool, is_awaiting_reply: bool):
        self.is_stalled = is_stalled
        self.is_awaiting_reply = is_awaiting_reply

    def __eq__(self, other):
        return isinstance(other, IssueStatus) and vars(self) == vars(other)

    def __repr__(self):
        return f"IssueStatus(is_stalled={self.is_stalled}, is_awaiting_reply={self.is_awaiting_reply})"


class MemberStats:
    def __init__(self, comments: int, issues_closed: int, linked_prs_count: int):
        self.comments = comments
        self.issues_closed = issues_closed
        self.linked_prs_count = linked_prs_count


def _when(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except InvalidTimestamp:
        logger.warning("Ignoring invalid timestamp %r", value)
        return None


def _sorted_comments(comments: Iterable[Comment]) -> List[Tuple[datetime, Comment]]:
    dated = []
    for c in comments:
        when = _when(c.created_at)
        if when is not None:
            dated.append((when, c))
    dated.sort(key=lambda pair: (pair[0], id_order_key(pair[1].comment_id)), reverse=True)
    return dated


def _comments_by_issue(comments: Iterable[Comment]) -> Dict[str, List[Comment]]:
    grouped: Dict[str, List[Comment]] = {}
    for c in comments:
        grouped.setdefault(c.issue_id, []).append(c)
    return grouped


def is_blocked(issue: Issue) -> bool:
    """Blocked when a label names a blocking state or the title/body mentions one."""
    if any(bl in (lbl.name or '').lower() for lbl in issue.labels for bl in BLOCKED_LABELS):
        return True
    text = f"{issue.title or ''}\n{issue.body or ''}".lower()
    return any(kw in text for kw in BLOCKED_KEYWORDS)


def _last_team_comment(comments: Iterable[Comment], team: set) -> Optional[datetime]:
    for when, c in _sorted_comments(comments):
        if c.author in team:
            return when
    return None


def stall_insights(issues: Iterable[Issue], comments: Iterable[Comment], team_members: Iterable[str], now: datetime, stale_days: int = 3) -> StallInsights:
    """Split open issues into blocked ones and stale ones (no team comment within stale_days)."""
    team = set(team_members)
    threshold = parse_timestamp(now) - timedelta(days=stale_days)
    by_issue = _comments_by_issue(comments)
    stale: List[Issue] = []
    blocked: List[Issue] = []
    for issue in issues:
        if (issue.state or '').upper() != 'OPEN':
            continue
        if is_blocked(issue):
            blocked.append(issue)
            continue
        last = _last_team_comment(by_issue.get(issue.issue_id, []), team)
        if last is None or last < threshold:
            stale.append(issue)
    return StallInsights(stale=stale, blocked=blocked)


def batch_issue_status(issue_ids: Iterable[str], comments: Iterable[Comment], team_members: Iterable[str], now: datetime, stale_days: int = 3) -> Dict[str, IssueStatus]:
    """
    Status per issue: stalled when no team comment within stale_days, awaiting reply when the
    latest comment is from outside the team and asks a question.
    """
    team = set(team_members)
    threshold = parse_timestamp(now) - timedelta(days=stale_days)
    by_issue = _comments_by_issue(comments)
    result: Dict[str, IssueStatus] = {}
    for issue_id in issue_ids:
        ordered = _sorted_comments(by_issue.get(issue_id, []))
        last_team = next((when for when, c in ordered if c.author in team), None)
        latest = ordered[0][1] if ordered else None
        awaiting = latest is not None and latest.author not in team and '?' in (latest.body or '')
        result[issue_id] = IssueStatus(is_stalled=last_team is None or last_team < threshold, is_awaiting_reply=awaiting)
    return result


def issue_engaged_members(issue: Issue, comments: Iterable[Comment], team_members: Iterable[str]) -> List[str]:
    """Team members assigned to the issue or commenting on it."""
    team = set(team_members)
    engaged = {a for a in issue.assignees if a in team}
    engaged.update(c.author for c in comments if c.issue_id == issue.issue_id and c.author in team)
    return sorted(engaged)


def batch_issue_engaged_members(issues: Iterable[Issue], comments: Iterable[Comment], team_members: Iterable[str]) -> Dict[str, List[str]]:
    team = list(team_members)
    by_issue = _comments_by_issue(comments)
    return {i.issue_id: issue_engaged_members(i, by_issue.get(i.issue_id, []), team) for i in issues}


def team_member_stats(team_members: Iterable[str], issues: Sequence[Issue], comments: Iterable[Comment], now: datetime, lookback_days: int = 180) -> Dict[str, MemberStats]:
    """Comments made and issues closed within the lookback window, plus linked PRs authored, per member."""
    since = parse_timestamp(now) - timedelta(days=lookback_days)
    recent_comments: Dict[str, int] = {}
    for c in comments:
        when = _when(c.created_at)
        if when is not None and when >= since:
            recent_comments[c.author] = recent_comments.get(c.author, 0) + 1

    stats: Dict[str, MemberStats] = {}
    for member in team_members:
        closed = 0
        linked = 0
        for issue in issues:
            closed_at = _when(issue.closed_at)
            if (issue.state or '').upper() == 'CLOSED' and member in issue.assignees and closed_at is not None and closed_at >= since:
                closed += 1
            linked += sum(1 for pr in issue.linked_prs if pr.author == member)
        stats[member] = MemberStats(comments=recent_comments.get(member, 0), issues_closed=closed, linked_prs_count=linked)
    return stats


def member_engaged_issues(member: str, issues: Iterable[Issue], comments: Iterable[Comment]) -> List[Issue]:
    """Issues the member is assigned to or commented on, most recently updated first."""
    commented = {c.issue_id for c in comments if c.author == member}
    engaged = [i for i in issues if member in i.assignees or i.issue_id in commented]
    engaged.sort(key=lambda i: _when(i.updated_at) or EPOCH, reverse=True)
    return engaged


def aor_expertise(issues: Iterable[Issue], aors: Sequence[AreaOfResponsibility]) -> Dict[str, List[Issue]]:
    """Issues per AoR, matching terms against the issue title only."""
    expertise: Dict[str, List[Issue]] = {a.aor_id: [] for a in aors}
    for issue in issues:
        title = (issue.title or '').lower()
        for aor in aors:
            if any(t.lower() in title for t in aor.terms if t):
                expertise[aor.aor_id].append(issue)
    return expertise


def search_issues(issues: Iterable[Issue], query: str) -> List[Issue]:
    q = (query or '').lower()
    return [
        i for i in issues
        if q in (i.title or '').lower() or q in (i.body or '').lower() or any(q in (lbl.name or '').lower() for lbl in i.labels)
    ]


def issues_by_label(issues: Iterable[Issue], label: str) -> List[Issue]:
    needle = (label or '').lower()
    return [i for i in issues if any(needle in (lbl.name or '').lower() for lbl in i.labels)]


def filter_efforts(
    efforts: Iterable[IssueTeamEffort],
    state: str = 'all',
    repository: Optional[str] = None,
    query: Optional[str] = None,
    sort_by: Optional[str] = None,
    ascending: bool = False,
) -> Tuple[IssueTeamEffort, ...]:
    """
    Apply the issues-view filters: state (all/open/closed), repository and a free-text query.
    With sort_by (one of EFFORT_SORT_KEYS) the result is re-sorted, descending unless ascending;
    ties keep their incoming order. Without it the incoming order is kept.
    """
    if sort_by is not None and sort_by not in EFFORT_SORT_KEYS:
        raise ValueError(f"Unknown sort key '{sort_by}'; expected one of {', '.join(EFFORT_SORT_KEYS)}")
    out = []
    st = (state or 'all').lower()
    q = (query or '').strip().lower()
    for e in efforts:
        if st in ('open', 'closed') and (e.state or '').lower() != st:
            continue
        if repository and repository != 'all' and e.repository != repository:
            continue
        if q and not (q in (e.title or '').lower() or q in str(e.issue_number) or q in (e.repository or '').lower()):
            continue
        out.append(e)
    if sort_by is not None:
        out.sort(key=EFFORT_SORT_KEYS[sort_by], reverse=not ascending)
    return tuple(out)
