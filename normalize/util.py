"""
Normalization utility helpers.
Day-key derivation plus helpers to normalize raw payloads into normalize.models entities.
"""
import hashlib
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Any, List, Optional

from normalize.models import (
    ACTIVITY_TYPES,
    AreaOfResponsibility,
    Comment,
    Issue,
    Label,
    LinkedPR,
    PRActivity,
    Snapshot,
)

logger = logging.getLogger(__name__)

# microseconds are always written so equal-width strings sort chronologically
CANONICAL_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


class InvalidTimestamp(ValueError):
    """Raised when a record's timestamp cannot be parsed as ISO8601."""

    def __init__(self, value: Any):
        super().__init__(f"Invalid timestamp: {value!r}")
        self.value = value


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO8601 timestamp into an aware UTC datetime. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise InvalidTimestamp(value)
        text = value.strip()
        if text[-1] in ('Z', 'z'):
            text = text[:-1] + '+00:00'
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidTimestamp(value) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@lru_cache(maxsize=65536)
def day_key(timestamp: str) -> str:
    """Return the UTC calendar day ('YYYY-MM-DD') of an ISO8601 timestamp."""
    return parse_timestamp(timestamp).strftime('%Y-%m-%d')


def safe_day_key(timestamp: str, record_kind: str = 'record', record_id: Any = None) -> Optional[str]:
    """Like day_key, but logs and returns None for unparseable timestamps so callers can skip the record."""
    if not isinstance(timestamp, (str, datetime)):
        logger.warning("Skipping %s %s: timestamp is not a string %r", record_kind, record_id, timestamp)
        return None
    try:
        return day_key(timestamp)
    except InvalidTimestamp:
        logger.warning("Skipping %s %s: invalid timestamp %r", record_kind, record_id, timestamp)
        return None


def canonical_timestamp(value: Any) -> str:
    """Rewrite a timestamp in the fixed-width UTC form so string comparison orders chronologically."""
    return parse_timestamp(value).strftime(CANONICAL_TIMESTAMP_FORMAT)


def id_order_key(record_id: Any) -> tuple:
    """Sort key for record ids: all-digit ids compare numerically and sort before other ids."""
    text = str(record_id)
    if text.isascii() and text.isdigit():
        return (0, int(text), text)
    return (1, 0, text)


def _first(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        val = raw.get(k)
        if val is not None and val != '':
            return val
    return default


def _login(value: Any) -> str:
    # author fields arrive either as a plain login or as a {'login': ...} object
    if isinstance(value, dict):
        return value.get('login') or value.get('name') or ''
    return str(value) if value is not None else ''


def _timestamp_or_raw(value: Any) -> Any:
    try:
        return canonical_timestamp(value)
    except InvalidTimestamp:
        # keep the raw value; aggregators skip it with a warning
        return value


def _require(value: Any, field: str, kind: str) -> str:
    if value is None or value == '':
        raise ValueError(f"{kind} record is missing required field '{field}'")
    return str(value)


def normalize_comment(raw: Dict[str, Any]) -> Comment:
    """Create a normalized Comment from a raw dict (camelCase or snake_case keys)."""
    comment_id = _require(_first(raw, 'id', 'comment_id'), 'id', 'comment')
    issue_id = _require(_first(raw, 'issueId', 'issue_id'), 'issueId', 'comment')
    created = _first(raw, 'createdAt', 'created_at', default='')
    return Comment(
        comment_id=comment_id,
        issue_id=issue_id,
        author=_login(_first(raw, 'author', 'user')),
        body=raw.get('body') or '',
        created_at=_timestamp_or_raw(created),
    )


def normalize_pr_activity(raw: Dict[str, Any]) -> PRActivity:
    """Create a normalized PRActivity. Unknown activity types are rejected."""
    activity_id = _require(_first(raw, 'id', 'activity_id'), 'id', 'pr activity')
    pr_id = _require(_first(raw, 'prId', 'pr_id'), 'prId', 'pr activity')
    activity_type = (raw.get('type') or '').lower()
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"pr activity {activity_id} has unknown type {raw.get('type')!r}")
    created = _first(raw, 'createdAt', 'created_at', default='')
    return PRActivity(
        activity_id=activity_id,
        pr_id=pr_id,
        type=activity_type,
        author=_login(raw.get('author')),
        created_at=_timestamp_or_raw(created),
    )


def normalize_linked_pr(raw: Dict[str, Any]) -> LinkedPR:
    return LinkedPR(
        pr_id=_require(_first(raw, 'id', 'pr_id'), 'id', 'linked pr'),
        number=int(raw.get('number') or 0),
        author=_login(raw.get('author')),
        url=raw.get('url') or '',
        state=raw.get('state'),
    )


def _labels(raw_labels: Any) -> List[Label]:
    labels = []
    for lbl in raw_labels or []:
        name = lbl.get('name') if isinstance(lbl, dict) else lbl
        if name:
            labels.append(Label(str(name)))
    return labels


def normalize_issue(raw: Dict[str, Any]) -> Issue:
    """Create a normalized Issue from a raw dict, including its linked pull request snapshots."""
    issue_id = _require(_first(raw, 'id', 'issue_id'), 'id', 'issue')
    linked = [normalize_linked_pr(pr) for pr in (_first(raw, 'linkedPRs', 'linked_prs', default=[]) or [])]
    return Issue(
        issue_id=issue_id,
        number=int(raw.get('number') or 0),
        repository=raw.get('repository') or '',
        title=raw.get('title') or '',
        state=(raw.get('state') or 'OPEN').upper(),
        url=raw.get('url') or '',
        labels=_labels(raw.get('labels')),
        linked_prs=linked,
        body=raw.get('body') or '',
        author=_login(raw.get('author')) or None,
        assignees=[_login(a) for a in raw.get('assignees') or []],
        created_at=_first(raw, 'createdAt', 'created_at'),
        updated_at=_first(raw, 'updatedAt', 'updated_at'),
        closed_at=_first(raw, 'closedAt', 'closed_at'),
    )


def normalize_aor(raw: Dict[str, Any]) -> AreaOfResponsibility:
    terms = raw.get('terms') or []
    if isinstance(terms, str):
        terms = [t.strip() for t in terms.split(',')]
    name = raw.get('name') or ''
    return AreaOfResponsibility(
        aor_id=str(raw.get('id') or name),
        name=name,
        terms=[str(t) for t in terms if str(t).strip()],
    )


def _normalize_all(raw_items: Any, normalizer, kind: str) -> list:
    out = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            logger.warning("Skipping %s entry that is not an object: %r", kind, raw)
            continue
        try:
            out.append(normalizer(raw))
        except ValueError as exc:
            logger.warning("Skipping %s: %s", kind, exc)
    return out


def normalize_snapshot(raw: Dict[str, Any]) -> Snapshot:
    """Build a Snapshot from a raw dict with 'comments', 'prActivities' and 'issues' collections."""
    return Snapshot(
        comments=_normalize_all(raw.get('comments'), normalize_comment, 'comment'),
        pr_activities=_normalize_all(_first(raw, 'prActivities', 'pr_activities', 'prActivity', default=[]), normalize_pr_activity, 'pr activity'),
        issues=_normalize_all(raw.get('issues'), normalize_issue, 'issue'),
    )


def load_snapshot(path: str) -> Snapshot:
    """Read a JSON snapshot file and normalize it."""
    with open(path, 'r', encoding='utf-8') as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Snapshot file {path} must contain a JSON object")
    return normalize_snapshot(raw)


def _record_key(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, default=vars)


def snapshot_fingerprint(snapshot: Snapshot, extra: Optional[Dict[str, Any]] = None) -> str:
    """Content hash of a snapshot (and optional config), independent of record order."""
    doc = {
        'comments': sorted(_record_key(c) for c in snapshot.comments),
        'pr_activities': sorted(_record_key(a) for a in snapshot.pr_activities),
        'issues': sorted(_record_key(i) for i in snapshot.issues),
        'extra': extra or {},
    }
    payload = json.dumps(doc, sort_keys=True, default=vars).encode('utf-8')
    return hashlib.sha256(payload).hexdigest()
