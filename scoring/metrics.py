"""
Engagement metrics.
Turns comments and PR activities into per-issue, per-member and per-team day-granular engagement records.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from normalize.models import AreaOfResponsibility, Comment, Issue, PRActivity
from normalize.util import id_order_key, parse_timestamp
from correlate.linker import (
    ROLE_AUTHOR,
    ROLE_REVIEWER,
    classify_activity,
    group_by_author,
    index_activities_by_issue,
    index_comments_by_issue,
    linked_pr_ids,
    pr_author_map,
    pr_info_map,
    pr_to_issues,
)
from correlate.models import (
    CommentDay,
    DailyActivity,
    IssueEngagement,
    IssueTeamEffort,
    MemberIssueContribution,
    PRDay,
    PRLink,
    TeamMemberEngagement,
    frozen_mapping,
)
from .utils import day_set, group_by_day, issue_matches_aor, rank_aors, record_day

logger = logging.getLogger(__name__)


class EngagementIndex:
    """
    Pre-computed lookups over one snapshot so batch calculations avoid rescanning every collection per issue or member.
    Comments on unknown issues and activities on PRs no issue links are filtered out here.
    """

    def __init__(self, comments: Iterable[Comment], pr_activities: Iterable[PRActivity], issues: Iterable[Issue]):
        pr_activities = list(pr_activities)
        self.issues_by_id: Dict[str, Issue] = {i.issue_id: i for i in issues}
        issue_list = list(self.issues_by_id.values())
        self.pr_issue_map = pr_to_issues(issue_list)
        self.pr_authors = pr_author_map(issue_list)
        self.pr_info = pr_info_map(issue_list)
        self.comments_by_issue = index_comments_by_issue(comments, set(self.issues_by_id))
        self.activities_by_issue = index_activities_by_issue(pr_activities, self.pr_issue_map)

        known_comments = [c for group in self.comments_by_issue.values() for c in group]
        linked_activities = [a for a in pr_activities if a.pr_id in self.pr_issue_map]
        self.comments_by_author = group_by_author(known_comments)
        self.activities_by_author = group_by_author(linked_activities)


def _roles_by_day(activities_by_day: Mapping[str, List[PRActivity]], pr_authors: Dict[str, str]) -> Dict[str, Dict[str, int]]:
    tallies: Dict[str, Dict[str, int]] = {}
    for d, acts in activities_by_day.items():
        counts = {ROLE_AUTHOR: 0, ROLE_REVIEWER: 0}
        for a in acts:
            role = classify_activity(a, pr_authors)
            if role in counts:
                counts[role] += 1
        tallies[d] = counts
    return tallies


def _issues_touched_by_day(member_comments: Iterable[Comment]) -> Dict[str, Set[str]]:
    touched: Dict[str, Set[str]] = {}
    for d, group in group_by_day(member_comments).items():
        touched[d] = {c.issue_id for c in group}
    return touched


def _linked_issues_touched_by_day(member_activities: Iterable[PRActivity], pr_issue_map: Dict[str, List[str]]) -> Dict[str, Set[str]]:
    touched: Dict[str, Set[str]] = {}
    for d, group in group_by_day(member_activities).items():
        issues: Set[str] = set()
        for a in group:
            issues.update(pr_issue_map.get(a.pr_id, ()))
        touched[d] = issues
    return touched


def _split_credit(days: Iterable[str], issue_id: str, touched_by_day: Dict[str, Set[str]]) -> float:
    # each active day is worth 1, shared equally by every issue touched that day
    credit = 0.0
    for d in sorted(days):
        n = len(touched_by_day.get(d, set()) | {issue_id})
        credit += 1.0 / n
    return credit


def calculate_issue_engagement(
    username: str,
    issue: Issue,
    comments: Iterable[Comment],
    pr_activities: Iterable[PRActivity],
    member_comments: Iterable[Comment],
    member_pr_activities: Iterable[PRActivity],
    pr_issue_map: Dict[str, List[str]],
    pr_authors: Optional[Dict[str, str]] = None,
) -> Optional[IssueEngagement]:
    """
    Calculate one member's engagement on one issue.

    `comments` and `pr_activities` may be the full collections or any superset of this issue's records.
    `member_comments` / `member_pr_activities` are the member's history across all tracked issues and
    drive the context-switch credit: a day split across N issues in a channel earns 1/N on each.
    `pr_issue_map` maps every linked PR id to the issues linking it.

    Returns None when the member has no qualifying activity on the issue.
    """
    if pr_authors is None:
        pr_authors = pr_author_map([issue])
    linked = linked_pr_ids(issue)

    own_comments = [c for c in comments if c.issue_id == issue.issue_id and c.author == username]
    own_activities = [a for a in pr_activities if a.pr_id in linked and a.author == username]

    comments_by_day = group_by_day(own_comments)
    activities_by_day = group_by_day(own_activities)
    if not comments_by_day and not activities_by_day:
        return None

    roles = _roles_by_day(activities_by_day, pr_authors)
    author_days = [d for d, r in roles.items() if r[ROLE_AUTHOR] > 0]
    reviewer_days = [d for d, r in roles.items() if r[ROLE_REVIEWER] > 0]

    comm_credits = _split_credit(comments_by_day, issue.issue_id, _issues_touched_by_day(member_comments))
    dev_credits = _split_credit(activities_by_day, issue.issue_id, _linked_issues_touched_by_day(member_pr_activities, pr_issue_map))

    details = []
    for d in sorted(set(comments_by_day) | set(activities_by_day), reverse=True):
        role_counts = roles.get(d, {ROLE_AUTHOR: 0, ROLE_REVIEWER: 0})
        details.append(DailyActivity(
            date=d,
            comment_count=len(comments_by_day.get(d, ())),
            pr_activity_count=len(activities_by_day.get(d, ())),
            author_activity_count=role_counts[ROLE_AUTHOR],
            review_activity_count=role_counts[ROLE_REVIEWER],
        ))

    return IssueEngagement(
        issue_id=issue.issue_id,
        comm_days=len(comments_by_day),
        dev_days=len(activities_by_day),
        author_days=len(author_days),
        reviewer_days=len(reviewer_days),
        comm_day_credits=comm_credits,
        dev_day_credits=dev_credits,
        activity_details=tuple(details),
        total_comments=sum(d.comment_count for d in details),
        total_pr_activities=sum(d.pr_activity_count for d in details),
        total_author_activities=sum(d.author_activity_count for d in details),
        total_review_activities=sum(d.review_activity_count for d in details),
    )


def _member_issue_ids(member_comments: Iterable[Comment], member_activities: Iterable[PRActivity], pr_issue_map: Dict[str, List[str]]) -> Set[str]:
    issue_ids = {c.issue_id for c in member_comments}
    for a in member_activities:
        issue_ids.update(pr_issue_map.get(a.pr_id, ()))
    return issue_ids


def calculate_member_engagement(
    username: str,
    comments: Iterable[Comment],
    pr_activities: Iterable[PRActivity],
    issues: Iterable[Issue],
    aors: Sequence[AreaOfResponsibility] = (),
    index: Optional[EngagementIndex] = None,
) -> TeamMemberEngagement:
    """
    Aggregate a member's engagement across every tracked issue.

    Day counts are deduplicated at member level, total_active_days is the union of the comment and
    PR-activity day sets, and each active day earns one full credit per channel (the per-issue
    engagements carry the split credit).
    """
    if index is None:
        index = EngagementIndex(comments, pr_activities, issues)

    member_comments = index.comments_by_author.get(username, [])
    member_activities = index.activities_by_author.get(username, [])

    comm_days = day_set(member_comments)
    dev_days = day_set(member_activities)
    roles = _roles_by_day(group_by_day(member_activities), index.pr_authors)
    author_days = {d for d, r in roles.items() if r[ROLE_AUTHOR] > 0}
    reviewer_days = {d for d, r in roles.items() if r[ROLE_REVIEWER] > 0}

    engagements: Dict[str, IssueEngagement] = {}
    for issue_id in sorted(_member_issue_ids(member_comments, member_activities, index.pr_issue_map)):
        issue = index.issues_by_id.get(issue_id)
        if issue is None:
            continue
        engagement = calculate_issue_engagement(
            username,
            issue,
            index.comments_by_issue.get(issue_id, []),
            index.activities_by_issue.get(issue_id, []),
            member_comments,
            member_activities,
            pr_issue_map=index.pr_issue_map,
            pr_authors=index.pr_authors,
        )
        if engagement is not None:
            engagements[issue_id] = engagement

    aor_days: Dict[str, Set[str]] = {}
    for issue_id, engagement in engagements.items():
        issue = index.issues_by_id[issue_id]
        issue_days = {d.date for d in engagement.activity_details}
        for aor in aors:
            if issue_matches_aor(issue, aor):
                aor_days.setdefault(aor.aor_id, set()).update(issue_days)

    return TeamMemberEngagement(
        username=username,
        total_active_days=len(comm_days | dev_days),
        comm_days=len(comm_days),
        dev_days=len(dev_days),
        author_days=len(author_days),
        reviewer_days=len(reviewer_days),
        comm_day_credits=float(len(comm_days)),
        dev_day_credits=float(len(dev_days)),
        top_aors=rank_aors(list(aors), aor_days),
        issue_engagements=frozen_mapping(engagements),
    )


def _unique_members(team_members: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for m in team_members:
        if m and m not in seen:
            seen.add(m)
            ordered.append(m)
    return ordered


def calculate_team_engagement(
    team_members: Iterable[str],
    comments: Iterable[Comment],
    pr_activities: Iterable[PRActivity],
    issues: Iterable[Issue],
    aors: Sequence[AreaOfResponsibility] = (),
    index: Optional[EngagementIndex] = None,
) -> Mapping[str, TeamMemberEngagement]:
    """Member engagement for every team member with at least one active day, keyed by member."""
    if index is None:
        index = EngagementIndex(comments, pr_activities, issues)
    result: Dict[str, TeamMemberEngagement] = {}
    for member in _unique_members(team_members):
        engagement = calculate_member_engagement(member, (), (), (), aors, index=index)
        if engagement.total_active_days > 0:
            result[member] = engagement
    return frozen_mapping(result)


def calculate_issue_member_engagements(
    issue: Issue,
    team_members: Iterable[str],
    comments: Iterable[Comment],
    pr_activities: Iterable[PRActivity],
    issues: Iterable[Issue],
    index: Optional[EngagementIndex] = None,
) -> Mapping[str, IssueEngagement]:
    """Per-member engagement on a single issue, for members who commented on it or worked on a linked PR."""
    if index is None:
        index = EngagementIndex(comments, pr_activities, list(issues) + [issue])
    result: Dict[str, IssueEngagement] = {}
    for member in _unique_members(team_members):
        engagement = calculate_issue_engagement(
            member,
            issue,
            index.comments_by_issue.get(issue.issue_id, []),
            index.activities_by_issue.get(issue.issue_id, []),
            index.comments_by_author.get(member, []),
            index.activities_by_author.get(member, []),
            pr_issue_map=index.pr_issue_map,
            pr_authors=index.pr_authors,
        )
        if engagement is not None:
            result[member] = engagement
    return frozen_mapping(result)


def _issue_team_effort(issue: Issue, issue_comments: Iterable[Comment], issue_activities: Iterable[PRActivity], team: Set[str], pr_authors: Dict[str, str]) -> IssueTeamEffort:
    commenter_pairs = set()
    author_pairs = set()
    reviewer_pairs = set()
    contributors = set()

    for c in issue_comments:
        if c.author not in team:
            continue
        d = record_day(c)
        if d is None:
            continue
        commenter_pairs.add((c.author, d))
        contributors.add(c.author)

    for a in issue_activities:
        if a.author not in team:
            continue
        d = record_day(a)
        if d is None:
            continue
        contributors.add(a.author)
        role = classify_activity(a, pr_authors)
        if role == ROLE_AUTHOR:
            author_pairs.add((a.author, d))
        elif role == ROLE_REVIEWER:
            reviewer_pairs.add((a.author, d))

    return IssueTeamEffort(
        issue_id=issue.issue_id,
        issue_number=issue.number,
        repository=issue.repository,
        title=issue.title,
        url=issue.url,
        state=issue.state,
        updated_at=issue.updated_at,
        total_effort_days=len(commenter_pairs) + len(author_pairs) + len(reviewer_pairs),
        commenter_days=len(commenter_pairs),
        author_days=len(author_pairs),
        reviewer_days=len(reviewer_pairs),
        contributors=tuple(sorted(contributors)),
    )


def calculate_all_issues_team_effort(
    issues: Iterable[Issue],
    comments: Iterable[Comment],
    pr_activities: Iterable[PRActivity],
    team_members: Iterable[str],
    index: Optional[EngagementIndex] = None,
) -> Tuple[IssueTeamEffort, ...]:
    """
    Team effort per issue. Channel days are distinct (member, day) pairs, so two members commenting
    on the same day count twice. Issues without effort are dropped; the rest are ordered by
    total effort descending, then repository and issue number.
    """
    if index is None:
        index = EngagementIndex(comments, pr_activities, issues)
    team = set(_unique_members(team_members))
    if not team:
        return ()

    efforts = []
    for issue_id, issue in index.issues_by_id.items():
        effort = _issue_team_effort(
            issue,
            index.comments_by_issue.get(issue_id, []),
            index.activities_by_issue.get(issue_id, []),
            team,
            index.pr_authors,
        )
        if effort.total_effort_days > 0:
            efforts.append(effort)
    efforts.sort(key=lambda e: (-e.total_effort_days, e.repository, e.issue_number, e.issue_id))
    return tuple(efforts)


def _pr_days(days: Dict[str, Set[str]], pr_info: Dict[str, Dict[str, object]]) -> Tuple[PRDay, ...]:
    out = []
    for d in sorted(days, reverse=True):
        links = [PRLink(number=pr_info[p]['number'], url=pr_info[p]['url']) for p in days[d]]
        links.sort(key=lambda link: (link.number, link.url))
        out.append(PRDay(date=d, pr_links=tuple(links)))
    return tuple(out)


def _comment_order(c: Comment) -> tuple:
    # same instant: the numerically larger id wins
    return (parse_timestamp(c.created_at), id_order_key(c.comment_id))


def _member_contribution(username: str, issue: Issue, comments: List[Comment], activities: List[PRActivity], pr_authors: Dict[str, str], pr_info: Dict[str, Dict[str, object]]) -> MemberIssueContribution:
    latest: Dict[str, Comment] = {}
    for c in comments:
        d = record_day(c)
        if d is None:
            continue
        current = latest.get(d)
        if current is None or _comment_order(c) > _comment_order(current):
            latest[d] = c

    authored: Dict[str, Set[str]] = {}
    reviewed: Dict[str, Set[str]] = {}
    for a in activities:
        if a.pr_id not in pr_info:
            continue
        d = record_day(a)
        if d is None:
            continue
        role = classify_activity(a, pr_authors)
        if role == ROLE_AUTHOR:
            authored.setdefault(d, set()).add(a.pr_id)
        elif role == ROLE_REVIEWER:
            reviewed.setdefault(d, set()).add(a.pr_id)

    comment_activity = tuple(
        CommentDay(date=d, comment_id=latest[d].comment_id, comment_url=f"{issue.url}#issuecomment-{latest[d].comment_id}")
        for d in sorted(latest, reverse=True)
    )
    return MemberIssueContribution(
        username=username,
        commenter_days=len(latest),
        author_days=len(authored),
        reviewer_days=len(reviewed),
        total_days=len(latest) + len(authored) + len(reviewed),
        comment_activity=comment_activity,
        author_activity=_pr_days(authored, pr_info),
        reviewer_activity=_pr_days(reviewed, pr_info),
    )


def build_issue_member_breakdown(
    issue: Issue,
    comments: Iterable[Comment],
    pr_activities: Iterable[PRActivity],
    team_members: Iterable[str],
    pr_authors: Optional[Dict[str, str]] = None,
) -> Tuple[MemberIssueContribution, ...]:
    """
    Build the auditable per-member trail for one issue: the latest comment per day, and the PRs
    authored or reviewed per day, most recent day first. Members without any counted day are omitted.
    """
    team = set(_unique_members(team_members))
    if pr_authors is None:
        pr_authors = pr_author_map([issue])
    pr_info = pr_info_map([issue])
    linked = linked_pr_ids(issue)

    comments_by_member = group_by_author(c for c in comments if c.issue_id == issue.issue_id and c.author in team)
    activities_by_member = group_by_author(a for a in pr_activities if a.pr_id in linked and a.author in team)

    breakdown = []
    for member in set(comments_by_member) | set(activities_by_member):
        contribution = _member_contribution(
            member,
            issue,
            comments_by_member.get(member, []),
            activities_by_member.get(member, []),
            pr_authors,
            pr_info,
        )
        if contribution.total_days > 0:
            breakdown.append(contribution)
    breakdown.sort(key=lambda m: (-m.total_days, m.username))
    return tuple(breakdown)


def build_all_issue_breakdowns(issue_ids: Iterable[str], team_members: Iterable[str], index: EngagementIndex) -> Mapping[str, Tuple[MemberIssueContribution, ...]]:
    """Member breakdowns for many issues using the pre-indexed comments and activities."""
    team = _unique_members(team_members)
    result = {}
    for issue_id in issue_ids:
        issue = index.issues_by_id.get(issue_id)
        if issue is None:
            logger.debug("No issue %s in snapshot; skipping breakdown", issue_id)
            continue
        result[issue_id] = build_issue_member_breakdown(
            issue,
            index.comments_by_issue.get(issue_id, []),
            index.activities_by_issue.get(issue_id, []),
            team,
            pr_authors=index.pr_authors,
        )
    return frozen_mapping(result)
