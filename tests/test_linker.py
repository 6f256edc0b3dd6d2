import unittest

from normalize.models import Comment, Issue, LinkedPR, PRActivity
from correlate.linker import (
    ROLE_AUTHOR,
    ROLE_REVIEWER,
    ROLE_UNCLASSIFIED,
    classify_activity,
    group_by_author,
    index_activities_by_issue,
    index_comments_by_issue,
    pr_author_map,
    pr_info_map,
    pr_to_issues,
)


def _issue(issue_id, prs=()):
    return Issue(issue_id, 1, 'acme/web', 'title', 'OPEN', f'https://example.test/{issue_id}', linked_prs=list(prs))


def _act(activity_id, pr_id, kind, author):
    return PRActivity(activity_id, pr_id, kind, author, '2024-02-02T10:00:00Z')


class TestClassifyActivity(unittest.TestCase):
    def setUp(self):
        self.authors = {'P10': 'bob'}

    def test_commit_by_pr_author_is_authoring(self):
        self.assertEqual(classify_activity(_act('a1', 'P10', 'commit', 'bob'), self.authors), ROLE_AUTHOR)

    def test_review_by_other_is_reviewing(self):
        self.assertEqual(classify_activity(_act('a2', 'P10', 'review', 'carol'), self.authors), ROLE_REVIEWER)
        self.assertEqual(classify_activity(_act('a3', 'P10', 'review_comment', 'carol'), self.authors), ROLE_REVIEWER)

    def test_self_review_is_unclassified(self):
        self.assertEqual(classify_activity(_act('a4', 'P10', 'review', 'bob'), self.authors), ROLE_UNCLASSIFIED)
        self.assertEqual(classify_activity(_act('a5', 'P10', 'review_comment', 'bob'), self.authors), ROLE_UNCLASSIFIED)

    def test_commit_by_non_author_is_unclassified(self):
        self.assertEqual(classify_activity(_act('a6', 'P10', 'commit', 'carol'), self.authors), ROLE_UNCLASSIFIED)

    def test_unknown_pr_is_unclassified(self):
        self.assertEqual(classify_activity(_act('a7', 'P99', 'commit', 'bob'), self.authors), ROLE_UNCLASSIFIED)


def test_pr_maps_from_issue_links():
    pr = LinkedPR('P10', 10, 'bob', 'https://example.test/pull/10')
    shared = LinkedPR('P20', 20, 'carol', 'https://example.test/pull/20')
    issues = [_issue('I1', [pr, shared]), _issue('I2', [shared])]

    assert pr_author_map(issues) == {'P10': 'bob', 'P20': 'carol'}
    assert pr_info_map(issues)['P20'] == {'number': 20, 'url': 'https://example.test/pull/20'}
    assert pr_to_issues(issues) == {'P10': ['I1'], 'P20': ['I1', 'I2']}


def test_indexes_drop_dangling_records():
    comments = [
        Comment('c1', 'I1', 'alice', '', '2024-01-01T00:00:00Z'),
        Comment('c2', 'I404', 'alice', '', '2024-01-01T00:00:00Z'),
    ]
    by_issue = index_comments_by_issue(comments, {'I1'})
    assert list(by_issue) == ['I1']

    acts = [_act('a1', 'P20', 'commit', 'carol'), _act('a2', 'P404', 'commit', 'carol')]
    by_issue = index_activities_by_issue(acts, {'P20': ['I1', 'I2']})
    assert [a.activity_id for a in by_issue['I1']] == ['a1']
    assert [a.activity_id for a in by_issue['I2']] == ['a1']
    assert set(by_issue) == {'I1', 'I2'}


def test_group_by_author():
    acts = [_act('a1', 'P1', 'commit', 'bob'), _act('a2', 'P1', 'review', 'carol'), _act('a3', 'P2', 'commit', 'bob')]
    grouped = group_by_author(acts)
    assert [a.activity_id for a in grouped['bob']] == ['a1', 'a3']
    assert [a.activity_id for a in grouped['carol']] == ['a2']
