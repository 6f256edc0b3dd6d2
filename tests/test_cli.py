import json
import os
import webbrowser
from pathlib import Path

import pytest

import cli
from cli import _write_report_file, main

DATA_DIR = os.path.join(os.path.dirname(__file__), 'data')
SNAPSHOT = os.path.join(DATA_DIR, 'snapshot.json')
CONFIG = os.path.join(DATA_DIR, 'engagement.yaml')


def _args(*extra):
    return ['--snapshot', SNAPSHOT, '--config', CONFIG, *extra]


def test_markdown_to_stdout(capsys):
    assert main(_args()) == 0
    out = capsys.readouterr().out
    assert '## Issues by Effort' in out
    assert '#### @bob: 2d (C: 1, A: 1, R: 0)' in out


def test_json_team_view(capsys):
    main(_args('--view', 'team', '--output', 'json'))
    doc = json.loads(capsys.readouterr().out)
    assert sorted(doc) == ['alice', 'bob', 'carol']


def test_team_override(capsys):
    main(_args('--view', 'team', '--output', 'json', '--team', 'carol, dave'))
    doc = json.loads(capsys.readouterr().out)
    # dave's comment on I1 counts once dave is on the roster
    assert sorted(doc) == ['carol', 'dave']
    assert doc['dave']['comm_days'] == 1


def test_team_override_drops_inactive_members(capsys):
    main(_args('--view', 'team', '--output', 'json', '--team', 'carol,zed'))
    doc = json.loads(capsys.readouterr().out)
    assert list(doc) == ['carol']


def test_filters_apply_to_issue_view(capsys):
    main(_args('--output', 'csv', '--state', 'closed'))
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    assert lines[1].startswith('I2,acme/web,2,')


def test_repo_and_search_filters(capsys):
    main(_args('--output', 'json', '--repo', 'acme/platform', '--search', 'sso'))
    doc = json.loads(capsys.readouterr().out)
    assert [i['issue_id'] for i in doc['issues']] == ['I1']


def test_sort_flags_reorder_issue_view(capsys):
    main(_args('--output', 'json', '--sort', 'total_effort_days', '--asc'))
    doc = json.loads(capsys.readouterr().out)
    assert [i['issue_id'] for i in doc['issues']] == ['I2', 'I1']
    main(_args('--output', 'csv', '--sort', 'updated_at'))
    lines = capsys.readouterr().out.strip().splitlines()
    assert [line.split(',')[0] for line in lines[1:]] == ['I1', 'I2']


def test_unknown_sort_key_rejected():
    with pytest.raises(SystemExit):
        main(_args('--sort', 'title'))


def test_html_written_to_file(tmp_path, monkeypatch, capsys):
    called = {}
    monkeypatch.setattr(webbrowser, 'open', lambda url: called.setdefault('url', url))
    out = tmp_path / 'reports' / 'staffing.html'
    main(_args('--output', 'html', '--out-file', str(out), '--open'))
    assert out.exists()
    assert '<table>' in out.read_text(encoding='utf-8')
    assert called['url'].endswith('staffing.html')
    assert f"Wrote report to {out}" in capsys.readouterr().out


def test_export_all(tmp_path):
    base = str(tmp_path / 'engagement')
    main(_args('--view', 'team', '--export-all', '--out-file', base))
    for ext in ('html', 'md', 'csv', 'json'):
        assert Path(f"{base}.{ext}").exists()
    assert json.loads(Path(f"{base}.json").read_text(encoding='utf-8'))['bob']['author_days'] == 1


def test_insights_view_with_fixed_now(capsys):
    main(_args('--view', 'insights', '--now', '2024-02-05T00:00:00Z', '--output', 'json'))
    doc = json.loads(capsys.readouterr().out)
    assert [i['issue_id'] for i in doc['blocked']] == ['I3']
    assert [i['issue_id'] for i in doc['awaiting_reply']] == ['I1']
    assert doc['stale'] == []


def test_member_view_requires_member():
    with pytest.raises(SystemExit):
        main(_args('--view', 'member'))


def test_missing_snapshot_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as ex:
        main(['--snapshot', str(tmp_path / 'missing.json'), '--config', CONFIG])
    assert ex.value.code == 2
    assert 'Failed to read snapshot' in capsys.readouterr().err


def test_bad_config_exits(tmp_path):
    bad = tmp_path / 'bad.yaml'
    bad.write_text('team_members: alice\n', encoding='utf-8')
    with pytest.raises(SystemExit):
        main(['--snapshot', SNAPSHOT, '--config', str(bad)])


def test_invalid_now_exits():
    with pytest.raises(SystemExit):
        main(_args('--view', 'insights', '--now', 'soon'))


def test_write_report_file_appends_extension(tmp_path):
    path = _write_report_file(str(tmp_path / 'out_report'), 'md', '# hi')
    assert path.endswith('out_report.md')
    assert Path(path).read_text(encoding='utf-8') == '# hi'
    # an existing extension is not doubled
    assert _write_report_file(str(tmp_path / 'x.csv'), 'csv', 'a,b').endswith('x.csv')


def test_browser_failure_is_reported(tmp_path, monkeypatch, capsys):
    def fail(url):
        raise webbrowser.Error('no browser')

    monkeypatch.setattr(cli, '_open_file_in_browser', fail)
    _write_report_file(str(tmp_path / 'r'), 'html', '<html></html>', open_html=True)
    assert 'Failed to open browser automatically' in capsys.readouterr().out
