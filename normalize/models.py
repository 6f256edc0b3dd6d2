"""
Unified data models for normalized collaboration records.
"""

from typing import List, Optional

ACTIVITY_TYPES = ('commit', 'review', 'review_comment')


class Comment:
    """
    Normalized issue comment.
    """
    def __init__(self, comment_id: str, issue_id: str, author: str, body: str, created_at: str):
        self.comment_id = comment_id
        self.issue_id = issue_id
        self.author = author
        self.body = body
        self.created_at = created_at  # ISO8601, UTC with 'Z' suffix


class PRActivity:
    """
    Normalized pull request activity (commit, review or review comment).
    """
    def __init__(self, activity_id: str, pr_id: str, type: str, author: str, created_at: str):
        self.activity_id = activity_id
        self.pr_id = pr_id
        self.type = type  # commit/review/review_comment
        self.author = author
        self.created_at = created_at


class Label:
    def __init__(self, name: str):
        self.name = name


class LinkedPR:
    """
    Snapshot of a pull request's identity and authorship taken when it was linked to an issue.
    """
    def __init__(self, pr_id: str, number: int, author: str, url: str, state: Optional[str] = None):
        self.pr_id = pr_id
        self.number = number
        self.author = author
        self.url = url
        self.state = state


class Issue:
    """
    Normalized issue entity with its linked pull requests.
    """
    def __init__(self, issue_id: str, number: int, repository: str, title: str, state: str, url: str, labels: Optional[List[Label]] = None, linked_prs: Optional[List[LinkedPR]] = None, body: str = '', author: Optional[str] = None, assignees: Optional[List[str]] = None, created_at: Optional[str] = None, updated_at: Optional[str] = None, closed_at: Optional[str] = None):
        self.issue_id = issue_id
        self.number = number
        self.repository = repository  # owner/repo
        self.title = title
        self.state = state  # OPEN/CLOSED
        self.url = url
        self.labels = labels or []
        self.linked_prs = linked_prs or []
        self.body = body
        self.author = author
        self.assignees = assignees or []
        self.created_at = created_at
        self.updated_at = updated_at
        self.closed_at = closed_at


class AreaOfResponsibility:
    """
    Named keyword set used to attribute issue engagement to an expertise bucket.
    """
    def __init__(self, aor_id: str, name: str, terms: List[str]):
        self.aor_id = aor_id
        self.name = name
        self.terms = terms


class Snapshot:
    """
    In-memory snapshot of the three input collections. The engine reads it and never mutates it.
    """
    def __init__(self, comments: Optional[List[Comment]] = None, pr_activities: Optional[List[PRActivity]] = None, issues: Optional[List[Issue]] = None):
        self.comments = list(comments or [])
        self.pr_activities = list(pr_activities or [])
        self.issues = list(issues or [])
