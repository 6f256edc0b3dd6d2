import unittest

from normalize.models import Comment, Issue, LinkedPR, PRActivity
from normalize.util import normalize_comment
from scoring.metrics import EngagementIndex, build_all_issue_breakdowns, build_issue_member_breakdown


ISSUE_URL = 'https://github.com/acme/web/issues/4'


def _issue():
    prs = [
        LinkedPR('P20', 20, 'alice', 'https://github.com/acme/web/pull/20'),
        LinkedPR('P10', 10, 'alice', 'https://github.com/acme/web/pull/10'),
        LinkedPR('P30', 30, 'carol', 'https://github.com/acme/web/pull/30'),
    ]
    return Issue('I4', 4, 'acme/web', 'Session expiry', 'OPEN', ISSUE_URL, linked_prs=prs)


class TestIssueMemberBreakdown(unittest.TestCase):
    def setUp(self):
        self.issue = _issue()
        self.comments = [
            Comment('c1', 'I4', 'alice', 'first', '2024-04-01T09:00:00Z'),
            Comment('c2', 'I4', 'alice', 'later', '2024-04-01T17:00:00Z'),
            Comment('c3', 'I4', 'alice', 'next day', '2024-04-02T08:00:00Z'),
            Comment('c9', 'I4', 'outsider', 'hello', '2024-04-02T08:00:00Z'),
        ]
        self.acts = [
            PRActivity('a1', 'P20', 'commit', 'alice', '2024-04-02T10:00:00Z'),
            PRActivity('a2', 'P10', 'commit', 'alice', '2024-04-02T11:00:00Z'),
            PRActivity('a3', 'P30', 'review', 'alice', '2024-04-03T11:00:00Z'),
            PRActivity('a4', 'P10', 'review_comment', 'bob', '2024-04-03T12:00:00Z'),
            PRActivity('a5', 'P10', 'review', 'alice', '2024-04-03T13:00:00Z'),
        ]

    def test_latest_comment_per_day(self):
        (alice, bob) = build_issue_member_breakdown(self.issue, self.comments, self.acts, ['alice', 'bob'])
        self.assertEqual(alice.username, 'alice')
        self.assertEqual([c.date for c in alice.comment_activity], ['2024-04-02', '2024-04-01'])
        self.assertEqual(alice.comment_activity[1].comment_id, 'c2')
        self.assertEqual(alice.comment_activity[1].comment_url, ISSUE_URL + '#issuecomment-c2')
        self.assertEqual(alice.commenter_days, 2)

    def test_pr_links_grouped_by_day_and_sorted(self):
        alice = build_issue_member_breakdown(self.issue, self.comments, self.acts, ['alice'])[0]
        self.assertEqual(alice.author_days, 1)
        self.assertEqual(alice.author_activity[0].date, '2024-04-02')
        self.assertEqual([p.number for p in alice.author_activity[0].pr_links], [10, 20])
        # the review on her own PR is not reviewing; the review on carol's PR is
        self.assertEqual(alice.reviewer_days, 1)
        self.assertEqual([p.number for p in alice.reviewer_activity[0].pr_links], [30])
        self.assertEqual(alice.total_days, 4)

    def test_members_ordered_by_total_then_name(self):
        comments = [
            Comment('c1', 'I4', 'zed', '', '2024-04-01T09:00:00Z'),
            Comment('c2', 'I4', 'amy', '', '2024-04-01T09:00:00Z'),
        ]
        breakdown = build_issue_member_breakdown(self.issue, comments, self.acts, ['zed', 'amy', 'alice', 'bob'])
        self.assertEqual([m.username for m in breakdown], ['alice', 'amy', 'bob', 'zed'])

    def test_non_team_members_omitted(self):
        breakdown = build_issue_member_breakdown(self.issue, self.comments, self.acts, ['bob'])
        self.assertEqual([m.username for m in breakdown], ['bob'])
        self.assertEqual(breakdown[0].reviewer_days, 1)

    def test_same_timestamp_tie_breaks_on_comment_id(self):
        comments = [
            Comment('c7', 'I4', 'alice', '', '2024-04-05T09:00:00Z'),
            Comment('c8', 'I4', 'alice', '', '2024-04-05T09:00:00Z'),
        ]
        for ordering in (comments, list(reversed(comments))):
            (alice,) = build_issue_member_breakdown(self.issue, ordering, [], ['alice'])
            self.assertEqual(alice.comment_activity[0].comment_id, 'c8')

    def test_numeric_comment_ids_compare_as_numbers(self):
        comments = [
            Comment('9', 'I4', 'alice', '', '2024-04-05T09:00:00Z'),
            Comment('10', 'I4', 'alice', '', '2024-04-05T09:00:00Z'),
        ]
        for ordering in (comments, list(reversed(comments))):
            (alice,) = build_issue_member_breakdown(self.issue, ordering, [], ['alice'])
            self.assertEqual(alice.comment_activity[0].comment_id, '10')

    def test_sub_second_order_survives_normalization(self):
        comments = [
            normalize_comment({'id': '10', 'issueId': 'I4', 'author': 'alice', 'createdAt': '2024-04-05T10:00:00.900Z'}),
            normalize_comment({'id': '9', 'issueId': 'I4', 'author': 'alice', 'createdAt': '2024-04-05T10:00:00.100Z'}),
        ]
        for ordering in (comments, list(reversed(comments))):
            (alice,) = build_issue_member_breakdown(self.issue, ordering, [], ['alice'])
            self.assertEqual(alice.comment_activity[0].comment_id, '10')

    def test_mixed_timestamp_precision_orders_by_instant(self):
        comments = [
            Comment('c1', 'I4', 'alice', '', '2024-04-05T10:00:00Z'),
            Comment('c2', 'I4', 'alice', '', '2024-04-05T10:00:00.250000Z'),
        ]
        (alice,) = build_issue_member_breakdown(self.issue, comments, [], ['alice'])
        self.assertEqual(alice.comment_activity[0].comment_id, 'c2')

    def test_unclassified_only_member_is_omitted(self):
        acts = [PRActivity('a9', 'P30', 'commit', 'bob', '2024-04-03T12:00:00Z')]
        self.assertEqual(build_issue_member_breakdown(self.issue, [], acts, ['bob']), ())


def test_build_all_issue_breakdowns_uses_index():
    issue = _issue()
    comments = [Comment('c1', 'I4', 'alice', '', '2024-04-01T09:00:00Z')]
    index = EngagementIndex(comments, [], [issue])
    result = build_all_issue_breakdowns(['I4', 'missing'], ['alice'], index)
    assert list(result) == ['I4']
    assert result['I4'][0].comment_activity[0].comment_url.endswith('#issuecomment-c1')
