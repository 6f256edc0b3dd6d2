"""
Linker helpers that associate comments and PR activities with issues, and classify PR activity roles.
Issues carry the authoritative PR links; activities only know their PR id.
"""
from typing import Dict, List, Iterable, Set
from normalize.models import Comment, Issue, PRActivity

ROLE_AUTHOR = 'author'
ROLE_REVIEWER = 'reviewer'
ROLE_UNCLASSIFIED = 'unclassified'

REVIEW_TYPES = ('review', 'review_comment')


def classify_activity(activity: PRActivity, pr_author_of: Dict[str, str]) -> str:
    """Classify a PR activity as author, reviewer or unclassified work relative to the PR's author.

    A commit counts as authoring only when made by the PR author; a review or review comment
    counts as reviewing only when made by someone else. Everything else, including activity on
    a PR whose author is unknown, is unclassified.
    """
    pr_author = pr_author_of.get(activity.pr_id)
    if pr_author is None:
        return ROLE_UNCLASSIFIED
    if activity.type == 'commit' and activity.author == pr_author:
        return ROLE_AUTHOR
    if activity.type in REVIEW_TYPES and activity.author != pr_author:
        return ROLE_REVIEWER
    return ROLE_UNCLASSIFIED


def pr_author_map(issues: Iterable[Issue]) -> Dict[str, str]:
    """Map PR id -> PR author, taken from the issues' linked PR snapshots."""
    authors: Dict[str, str] = {}
    for issue in issues:
        for pr in issue.linked_prs:
            authors.setdefault(pr.pr_id, pr.author)
    return authors


def pr_info_map(issues: Iterable[Issue]) -> Dict[str, Dict[str, object]]:
    """Map PR id -> {'number', 'url'} for display links."""
    info: Dict[str, Dict[str, object]] = {}
    for issue in issues:
        for pr in issue.linked_prs:
            info.setdefault(pr.pr_id, {'number': pr.number, 'url': pr.url})
    return info


def linked_pr_ids(issue: Issue) -> Set[str]:
    return {pr.pr_id for pr in issue.linked_prs}


def pr_to_issues(issues: Iterable[Issue]) -> Dict[str, List[str]]:
    """Map PR id -> ids of the issues linking it. One PR may be linked from several issues."""
    mapping: Dict[str, List[str]] = {}
    for issue in issues:
        for pr_id in sorted(linked_pr_ids(issue)):
            mapping.setdefault(pr_id, []).append(issue.issue_id)
    return mapping


def index_comments_by_issue(comments: Iterable[Comment], known_issue_ids: Set[str]) -> Dict[str, List[Comment]]:
    """Group comments by issue id, dropping comments on issues that are not in the snapshot."""
    grouped: Dict[str, List[Comment]] = {}
    for c in comments:
        if c.issue_id in known_issue_ids:
            grouped.setdefault(c.issue_id, []).append(c)
    return grouped


def index_activities_by_issue(activities: Iterable[PRActivity], pr_issue_map: Dict[str, List[str]]) -> Dict[str, List[PRActivity]]:
    """Group PR activities under every issue their PR is linked to. Activities on unlinked PRs are dropped."""
    grouped: Dict[str, List[PRActivity]] = {}
    for a in activities:
        for issue_id in pr_issue_map.get(a.pr_id, ()):
            grouped.setdefault(issue_id, []).append(a)
    return grouped


def group_by_author(records: Iterable) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for r in records:
        grouped.setdefault(r.author, []).append(r)
    return grouped
