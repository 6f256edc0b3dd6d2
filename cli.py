"""
CLI entry point for engagement reports. Wires the pipeline: snapshot -> normalize -> score -> report
"""

import argparse
import logging
import os
import webbrowser
from datetime import datetime, timezone

from normalize.util import InvalidTimestamp, load_snapshot, parse_timestamp
from scoring.config import load_config
from scoring.insights import EFFORT_SORT_KEYS, batch_issue_status, filter_efforts, stall_insights, team_member_stats
from evaluator import recompute
from report.renderer import VIEWS, render

OUTPUT_FORMATS = ('md', 'html', 'csv', 'json', 'text')
FILE_FORMATS = ('html', 'md', 'csv', 'json')

logger = logging.getLogger(__name__)


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def _default_out_path(view: str, ext: str) -> str:
    return f"engagement_{view}_{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}.{ext}"


def write_output(fmt: str, rendered: str, args):
    """Write output to file or stdout and optionally open HTML in browser."""
    if fmt in FILE_FORMATS and (args.out_file.strip() or fmt == 'html'):
        out_path = args.out_file.strip() or _default_out_path(args.view, fmt)
        out_dir = os.path.dirname(out_path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        with open(out_path, "w", encoding="utf-8", newline='') as f:
            f.write(rendered)
        print(f"Wrote report to {out_path}")
        if args.open and fmt == "html":
            try:
                _open_file_in_browser(out_path)
            except webbrowser.Error:
                print("Failed to open browser automatically; file saved at", out_path)
    else:
        print(rendered)


def _write_report_file(path_base: str, ext: str, content: str, open_html: bool = False):
    """Write the rendered content to `path_base.ext` and optionally open HTML in the browser."""
    out_path = path_base if path_base.lower().endswith(f".{ext}") else f"{path_base}.{ext}"
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' is safe for CSV on Windows and harmless for other formats
    with open(out_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Wrote report to {out_path}")
    if open_html:
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print('Failed to open browser automatically; file saved at', out_path)
    return out_path


def _resolve_now(args, parser) -> datetime:
    if not args.now:
        return datetime.now(timezone.utc)
    try:
        return parse_timestamp(args.now)
    except InvalidTimestamp:
        parser.error(f"Invalid --now timestamp: {args.now}")


def _build_insights(snapshot, config, now: datetime) -> dict:
    """Stale/blocked/awaiting-reply issue lists and member stats for the insights view."""
    stalls = stall_insights(snapshot.issues, snapshot.comments, config.team_members, now, config.stale_days)
    open_issues = [i for i in snapshot.issues if (i.state or '').upper() == 'OPEN']
    statuses = batch_issue_status([i.issue_id for i in open_issues], snapshot.comments, config.team_members, now, config.stale_days)
    return {
        'stale': stalls.stale,
        'blocked': stalls.blocked,
        'awaiting_reply': [i for i in open_issues if statuses[i.issue_id].is_awaiting_reply],
        'member_stats': team_member_stats(config.team_members, snapshot.issues, snapshot.comments, now, config.lookback_days),
    }


def _render_view(fmt: str, args, results, efforts, config, insights) -> str:
    return render(
        results,
        fmt=fmt,
        view=args.view,
        efforts=efforts,
        member=args.member,
        repositories=config.repositories,
        lookback_days=config.lookback_days,
        generated_at=datetime.now(timezone.utc).strftime('%Y-%m-%d'),
        insights=insights,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Team engagement attribution reports")
    parser.add_argument("--snapshot", type=str, required=True, help="Path to a JSON snapshot with comments, prActivities and issues")
    parser.add_argument("--config", type=str, default="", help="Path to engagement YAML config (defaults to $ENGAGEMENT_CONFIG or config/engagement.yaml)")
    parser.add_argument("--team", type=str, default="", help="Comma-separated team members; overrides the config roster")
    parser.add_argument("--view", choices=VIEWS, default="issues", help="Report view")
    parser.add_argument("--member", type=str, default="", help="Team member for --view member")
    parser.add_argument("--output", choices=OUTPUT_FORMATS, default="md", help="Output format")
    parser.add_argument("--out-file", type=str, default="", help="Output file path. HTML is always written to a file; a default name is used when omitted")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    parser.add_argument("--export-all", action="store_true", help="Export HTML, MD, CSV and JSON copies of the selected view")
    parser.add_argument("--state", choices=('all', 'open', 'closed'), default="all", help="Issues view: filter by issue state")
    parser.add_argument("--repo", type=str, default="", help="Issues view: restrict to one owner/repo")
    parser.add_argument("--search", type=str, default="", help="Issues view: match title, number or repository")
    parser.add_argument("--sort", choices=tuple(EFFORT_SORT_KEYS), default=None, help="Issues view: re-sort by this column (descending unless --asc)")
    parser.add_argument("--asc", action="store_true", help="Sort ascending with --sort")
    parser.add_argument("--now", type=str, default="", help="Reference time for insights (ISO-8601, defaults to current UTC time)")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    return parser


def _load_inputs(args, parser):
    """Load config (with any --team override) and the snapshot; exits via parser.error on bad input."""
    try:
        config = load_config(args.config or None)
    except ValueError as e:
        parser.error(str(e))
    if args.team:
        config = config.with_team([t.strip() for t in args.team.split(',') if t.strip()])
    if not config.team_members:
        logger.warning("No team members configured; reports will be empty")

    try:
        snapshot = load_snapshot(args.snapshot)
    except (OSError, ValueError) as e:
        parser.error(f"Failed to read snapshot {args.snapshot}: {e}")
    return config, snapshot


def _export_all(args, results, efforts, config, insights):
    """Write HTML, MD, CSV and JSON copies of the selected view next to each other."""
    base = args.out_file.strip() or _default_out_path(args.view, 'html')[:-len('.html')]
    for ffmt in FILE_FORMATS:
        content = _render_view(ffmt, args, results, efforts, config, insights)
        _write_report_file(base, ffmt, content, open_html=(ffmt == 'html' and args.open))


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING), format="%(levelname)s %(name)s: %(message)s")

    if args.view == 'member' and not args.member:
        parser.error("--member is required with --view member")

    config, snapshot = _load_inputs(args, parser)
    results = recompute(snapshot, config)
    efforts = filter_efforts(results.issue_efforts, state=args.state, repository=args.repo or None, query=args.search or None, sort_by=args.sort, ascending=args.asc)
    insights = _build_insights(snapshot, config, _resolve_now(args, parser)) if args.view == 'insights' else None

    if args.export_all:
        _export_all(args, results, efforts, config, insights)
    else:
        write_output(args.output, _render_view(args.output, args, results, efforts, config, insights), args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
