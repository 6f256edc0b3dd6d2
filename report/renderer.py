"""
Report renderer: generate Markdown/HTML/CSV/JSON/text views of engagement results.
Markdown and HTML are rendered with Jinja2 templates from report/templates.
"""

import csv
import io
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from correlate.models import EngagementResults, IssueTeamEffort, to_dict

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), 'templates')
VIEWS = ('issues', 'team', 'member', 'insights')

ISSUE_CSV_HEADER = ['issue_id', 'repository', 'number', 'title', 'state', 'total_effort_days', 'commenter_days', 'author_days', 'reviewer_days', 'contributors']
MEMBER_CSV_HEADER = ['username', 'total_active_days', 'comm_days', 'dev_days', 'author_days', 'reviewer_days', 'comm_day_credits', 'dev_day_credits', 'top_aors']
MEMBER_ISSUE_CSV_HEADER = ['username', 'issue_id', 'comm_days', 'dev_days', 'author_days', 'reviewer_days', 'comm_day_credits', 'dev_day_credits', 'total_comments', 'total_pr_activities']
INSIGHTS_CSV_HEADER = ['section', 'issue_id', 'repository', 'number', 'title', 'url']
INSIGHT_SECTIONS = ('stale', 'blocked', 'awaiting_reply')


def _shorten(title: str, limit: int = 50) -> str:
    title = title or ''
    return title if len(title) <= limit else title[:limit - 3] + '...'


def _state_badge(state: str) -> str:
    return '🟢 Open' if (state or '').upper() == 'OPEN' else '🟣 Closed'


def _environment(autoescape: bool) -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(['html', 'xml', 'html.j2']) if autoescape else False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters['shorten'] = _shorten
    env.filters['state_badge'] = _state_badge
    env.filters['credits'] = lambda v: f"{float(v or 0):.2f}"
    return env


def summarize_efforts(efforts: Iterable[IssueTeamEffort]) -> Dict[str, Any]:
    """Open/closed counts and channel totals over a list of issue efforts."""
    efforts = list(efforts)
    commenter = sum(e.commenter_days for e in efforts)
    author = sum(e.author_days for e in efforts)
    reviewer = sum(e.reviewer_days for e in efforts)
    total = commenter + author + reviewer
    return {
        'issue_count': len(efforts),
        'open_count': sum(1 for e in efforts if (e.state or '').upper() == 'OPEN'),
        'closed_count': sum(1 for e in efforts if (e.state or '').upper() == 'CLOSED'),
        'total_commenter_days': commenter,
        'total_author_days': author,
        'total_reviewer_days': reviewer,
        'total_effort': total,
        'average_per_issue': (total / len(efforts)) if efforts else 0.0,
    }


def report_title(repositories: Optional[List[str]], lookback_days: int) -> str:
    repos = ', '.join(repositories) if repositories else 'configured repositories'
    return f"Team Staffing for {repos} (Last {lookback_days} Days)"


def _context(
    results: EngagementResults,
    view: str,
    efforts: Optional[Iterable[IssueTeamEffort]],
    member: Optional[str],
    repositories: Optional[List[str]],
    lookback_days: int,
    generated_at: Optional[str],
    insights: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    efforts = tuple(results.issue_efforts if efforts is None else efforts)
    repos = repositories or sorted({e.repository for e in efforts})
    return {
        'view': view,
        'title': report_title(repos, lookback_days),
        'repositories': repos,
        'repo_list': ', '.join(repos) if repos else 'configured repositories',
        'lookback_days': lookback_days,
        'generated_at': generated_at or datetime.now(timezone.utc).strftime('%Y-%m-%d'),
        'efforts': efforts,
        'summary': summarize_efforts(efforts),
        'breakdowns': results.issue_breakdowns,
        'members': list(results.team_engagement.values()),
        'member': results.team_engagement.get(member) if member else None,
        'member_name': member,
        'insights': insights or {},
        'fingerprint': results.fingerprint,
    }


def render_markdown(results: EngagementResults, view: str = 'issues', **kwargs) -> str:
    """Render one of the Markdown views (issues, team, member, insights)."""
    ctx = _context(results, view, kwargs.get('efforts'), kwargs.get('member'), kwargs.get('repositories'), kwargs.get('lookback_days', 180), kwargs.get('generated_at'), kwargs.get('insights'))
    tmpl = _environment(autoescape=False).get_template(f"{view}_report.md.j2")
    return tmpl.render(**ctx)


def render_html(results: EngagementResults, view: str = 'issues', **kwargs) -> str:
    ctx = _context(results, view, kwargs.get('efforts'), kwargs.get('member'), kwargs.get('repositories'), kwargs.get('lookback_days', 180), kwargs.get('generated_at'), kwargs.get('insights'))
    tmpl = _environment(autoescape=True).get_template('report.html.j2')
    return tmpl.render(**ctx)


def _issue_rows(efforts: Iterable[IssueTeamEffort]) -> List[list]:
    return [
        [e.issue_id, e.repository, e.issue_number, e.title, e.state, e.total_effort_days, e.commenter_days, e.author_days, e.reviewer_days, ' '.join(e.contributors)]
        for e in efforts
    ]


def _member_rows(results: EngagementResults) -> List[list]:
    rows = []
    for m in results.team_engagement.values():
        aors = ';'.join(f"{a.aor_name}:{a.activity_days}" for a in m.top_aors)
        rows.append([m.username, m.total_active_days, m.comm_days, m.dev_days, m.author_days, m.reviewer_days, round(m.comm_day_credits, 4), round(m.dev_day_credits, 4), aors])
    return rows


def _member_issue_rows(results: EngagementResults, member: str) -> List[list]:
    engagement = results.team_engagement.get(member)
    if engagement is None:
        return []
    return [
        [member, ie.issue_id, ie.comm_days, ie.dev_days, ie.author_days, ie.reviewer_days, round(ie.comm_day_credits, 4), round(ie.dev_day_credits, 4), ie.total_comments, ie.total_pr_activities]
        for ie in engagement.issue_engagements.values()
    ]


def _insights_rows(insights: Dict[str, Any]) -> List[list]:
    return [
        [section, i.issue_id, i.repository, i.number, i.title, i.url]
        for section in INSIGHT_SECTIONS
        for i in insights.get(section, [])
    ]


def render_csv(results: EngagementResults, view: str = 'issues', efforts: Optional[Iterable[IssueTeamEffort]] = None, member: Optional[str] = None, insights: Optional[Dict[str, Any]] = None) -> str:
    """CSV rows for issue efforts, team members, one member's issues, or the insights issue lists."""
    output = io.StringIO()
    writer = csv.writer(output)
    if view == 'team':
        writer.writerow(MEMBER_CSV_HEADER)
        writer.writerows(_member_rows(results))
    elif view == 'member':
        writer.writerow(MEMBER_ISSUE_CSV_HEADER)
        writer.writerows(_member_issue_rows(results, member or ''))
    elif view == 'insights':
        writer.writerow(INSIGHTS_CSV_HEADER)
        writer.writerows(_insights_rows(insights or {}))
    else:
        writer.writerow(ISSUE_CSV_HEADER)
        writer.writerows(_issue_rows(results.issue_efforts if efforts is None else efforts))
    return output.getvalue()


def _insights_payload(insights: Dict[str, Any]) -> Dict[str, Any]:
    def issue_ref(issue):
        return {'issue_id': issue.issue_id, 'repository': issue.repository, 'number': issue.number, 'title': issue.title, 'url': issue.url}

    return {
        'stale': [issue_ref(i) for i in insights.get('stale', [])],
        'blocked': [issue_ref(i) for i in insights.get('blocked', [])],
        'awaiting_reply': [issue_ref(i) for i in insights.get('awaiting_reply', [])],
        'member_stats': {m: vars(s) for m, s in (insights.get('member_stats') or {}).items()},
    }


def render_json(results: EngagementResults, view: str = 'issues', efforts: Optional[Iterable[IssueTeamEffort]] = None, member: Optional[str] = None, insights: Optional[Dict[str, Any]] = None) -> str:
    """Export the selected view as JSON."""
    if view == 'team':
        payload: Any = to_dict(results.team_engagement)
    elif view == 'member':
        payload = to_dict(results.team_engagement.get(member)) if member else None
    elif view == 'insights':
        payload = _insights_payload(insights or {})
    else:
        selected = tuple(results.issue_efforts if efforts is None else efforts)
        payload = {
            'fingerprint': results.fingerprint,
            'summary': summarize_efforts(selected),
            'issues': to_dict(selected),
            'breakdowns': {e.issue_id: to_dict(results.issue_breakdowns.get(e.issue_id, ())) for e in selected},
        }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _insights_text(insights: Dict[str, Any]) -> str:
    lines = []
    for section in INSIGHT_SECTIONS:
        issues = insights.get(section, [])
        lines.append(f"{section.replace('_', ' ').capitalize()}: {len(issues)}")
        lines.extend(f"  {i.repository}#{i.number} {_shorten(i.title)}" for i in issues)
    for username, stats in (insights.get('member_stats') or {}).items():
        lines.append(f"{username}: {stats.comments} comments, {stats.issues_closed} closed, {stats.linked_prs_count} linked PRs")
    return '\n'.join(lines)


def render_text(results: EngagementResults, view: str = 'issues', efforts: Optional[Iterable[IssueTeamEffort]] = None, member: Optional[str] = None, insights: Optional[Dict[str, Any]] = None) -> str:
    """Plain-text summary for terminals."""
    if view == 'insights':
        return _insights_text(insights or {})
    if view in ('team', 'member'):
        members = results.team_engagement.values()
        if view == 'member':
            members = [m for m in members if m.username == member]
        lines = [
            f"{m.username}: {m.total_active_days} active days (comm {m.comm_days}, dev {m.dev_days}, author {m.author_days}, review {m.reviewer_days}), {len(m.issue_engagements)} issues"
            for m in members
        ]
        return '\n'.join(lines) if lines else 'No team activity.'
    selected = tuple(results.issue_efforts if efforts is None else efforts)
    summary = summarize_efforts(selected)
    lines = [f"Issues: {summary['issue_count']} ({summary['open_count']} open, {summary['closed_count']} closed)", f"Total effort: {summary['total_effort']} member-days"]
    for e in selected:
        lines.append(f"{e.repository}#{e.issue_number} {_shorten(e.title)}: {e.total_effort_days} (C {e.commenter_days}, A {e.author_days}, R {e.reviewer_days})")
    return '\n'.join(lines)


def render(
    results: EngagementResults,
    fmt: str = 'md',
    view: str = 'issues',
    efforts: Optional[Iterable[IssueTeamEffort]] = None,
    member: Optional[str] = None,
    repositories: Optional[List[str]] = None,
    lookback_days: int = 180,
    generated_at: Optional[str] = None,
    insights: Optional[Dict[str, Any]] = None,
) -> str:
    """Main render function; dispatches on output format."""
    if view not in VIEWS:
        raise ValueError(f"Unknown view '{view}'; expected one of {', '.join(VIEWS)}")
    fmt_l = (fmt or 'md').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(results, view, efforts=efforts, member=member, repositories=repositories, lookback_days=lookback_days, generated_at=generated_at, insights=insights)
    if fmt_l in ('html', 'htm'):
        return render_html(results, view, efforts=efforts, member=member, repositories=repositories, lookback_days=lookback_days, generated_at=generated_at, insights=insights)
    if fmt_l == 'csv':
        return render_csv(results, view, efforts=efforts, member=member, insights=insights)
    if fmt_l == 'json':
        return render_json(results, view, efforts=efforts, member=member, insights=insights)
    return render_text(results, view, efforts=efforts, member=member, insights=insights)
