"""
Evaluator: recompute every engagement view from one snapshot.
The whole result set is rebuilt from scratch whenever the snapshot or configuration changes.
"""
import logging
from typing import Optional

from normalize.models import Snapshot
from normalize.util import snapshot_fingerprint
from correlate.models import EngagementResults
from scoring.config import EngagementConfig
from scoring.metrics import (
    EngagementIndex,
    build_all_issue_breakdowns,
    calculate_all_issues_team_effort,
    calculate_team_engagement,
)

logger = logging.getLogger(__name__)


def recompute(snapshot: Snapshot, config: EngagementConfig, fingerprint: Optional[str] = None) -> EngagementResults:
    """
    Compute team engagement, per-issue team effort and per-issue member breakdowns.

    Parameters:
        snapshot (Snapshot): comments, PR activities and issues. Read only.
        config (EngagementConfig): team roster and areas of responsibility.
        fingerprint (str): content hash of snapshot + config; computed when omitted.

    Returns:
        EngagementResults: immutable results tagged with the snapshot fingerprint.
    """
    if fingerprint is None:
        fingerprint = snapshot_fingerprint(snapshot, config.fingerprint_data())

    index = EngagementIndex(snapshot.comments, snapshot.pr_activities, snapshot.issues)
    team = config.team_members

    team_engagement = calculate_team_engagement(team, (), (), (), config.aors, index=index)
    efforts = calculate_all_issues_team_effort((), (), (), team, index=index)
    breakdowns = build_all_issue_breakdowns([e.issue_id for e in efforts], team, index)

    logger.debug(
        "Recomputed %s: %d members, %d issues with effort", fingerprint[:12], len(team_engagement), len(efforts)
    )
    return EngagementResults(
        fingerprint=fingerprint,
        team_engagement=team_engagement,
        issue_efforts=efforts,
        issue_breakdowns=breakdowns,
    )


class EngagementEvaluator:
    """
    Memoizes recompute() by content hash. Callers invoke evaluate() whenever their snapshot may have
    changed; an identical snapshot returns the cached results and anything else is recomputed in full.
    """

    def __init__(self, config: EngagementConfig):
        self.config = config
        self._last: Optional[EngagementResults] = None

    def evaluate(self, snapshot: Snapshot) -> EngagementResults:
        fingerprint = snapshot_fingerprint(snapshot, self.config.fingerprint_data())
        if self._last is not None and self._last.fingerprint == fingerprint:
            logger.debug("Snapshot %s unchanged; reusing results", fingerprint[:12])
            return self._last
        self._last = recompute(snapshot, self.config, fingerprint=fingerprint)
        return self._last

    def invalidate(self):
        self._last = None
