"""
Scoring utility functions.
Day bucketing and area-of-responsibility matching helpers used by scoring.metrics.
"""
from typing import Dict, Iterable, List, Optional, Set, Tuple

from normalize.models import AreaOfResponsibility, Issue
from normalize.util import safe_day_key
from correlate.models import AorActivity

# number of areas of responsibility reported per member
TOP_AOR_LIMIT = 3


def record_day(record) -> Optional[str]:
    """Day key of a Comment or PRActivity, or None when its timestamp is unparseable."""
    kind = 'pr activity' if hasattr(record, 'pr_id') else 'comment'
    record_id = getattr(record, 'activity_id', None) or getattr(record, 'comment_id', None)
    return safe_day_key(record.created_at, kind, record_id)


def day_set(records: Iterable) -> Set[str]:
    """Distinct day keys across records; records with invalid timestamps are skipped."""
    days = set()
    for r in records:
        d = record_day(r)
        if d is not None:
            days.add(d)
    return days


def group_by_day(records: Iterable) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for r in records:
        d = record_day(r)
        if d is None:
            continue
        grouped.setdefault(d, []).append(r)
    return grouped


def issue_matches_aor(issue: Issue, aor: AreaOfResponsibility) -> bool:
    """True if any AoR term is a case-insensitive substring of the issue title or one of its label names."""
    title = (issue.title or '').lower()
    label_names = [(lbl.name or '').lower() for lbl in issue.labels]
    for term in aor.terms:
        t = term.lower()
        if not t:
            continue
        if t in title or any(t in name for name in label_names):
            return True
    return False


def rank_aors(aors: List[AreaOfResponsibility], aor_days: Dict[str, Set[str]], limit: int = TOP_AOR_LIMIT) -> Tuple[AorActivity, ...]:
    """Rank AoRs by distinct activity days, descending, keeping the top `limit` with a non-zero count.

    Equal counts keep the configured AoR order.
    """
    ranked = [
        AorActivity(aor_id=a.aor_id, aor_name=a.name, activity_days=len(aor_days.get(a.aor_id, ())))
        for a in aors
    ]
    ranked = [r for r in ranked if r.activity_days > 0]
    ranked.sort(key=lambda r: -r.activity_days)
    return tuple(ranked[:limit])
