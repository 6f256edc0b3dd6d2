"""
Engagement configuration: team roster, areas of responsibility and reporting windows.
Loaded from YAML and passed explicitly into every aggregation call.
"""
import os
from typing import Any, Dict, List, Optional

import yaml

from normalize.models import AreaOfResponsibility
from normalize.util import normalize_aor

# filename used for the engagement YAML configuration
CONFIG_FILENAME = 'engagement.yaml'
CONFIG_ENV_VAR = 'ENGAGEMENT_CONFIG'

DEFAULT_LOOKBACK_DAYS = int(os.getenv('ENGAGEMENT_LOOKBACK_DAYS', '180'))
DEFAULT_STALE_DAYS = 3


class EngagementConfig:
    """
    Explicit configuration value for the engine.
    """
    def __init__(self, team_members: Optional[List[str]] = None, aors: Optional[List[AreaOfResponsibility]] = None, repositories: Optional[List[str]] = None, lookback_days: int = DEFAULT_LOOKBACK_DAYS, stale_days: int = DEFAULT_STALE_DAYS):
        self.team_members = list(team_members or [])
        self.aors = list(aors or [])
        self.repositories = list(repositories or [])
        self.lookback_days = lookback_days
        self.stale_days = stale_days

    def fingerprint_data(self) -> Dict[str, Any]:
        """Content that affects results; used when memoizing recomputation."""
        return {
            'team_members': self.team_members,
            'aors': [{'id': a.aor_id, 'name': a.name, 'terms': a.terms} for a in self.aors],
        }

    def with_team(self, team_members: List[str]) -> 'EngagementConfig':
        return EngagementConfig(team_members, self.aors, self.repositories, self.lookback_days, self.stale_days)


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', CONFIG_FILENAME)


def _str_list(value: Any, key: str, path: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{key}' in {path} must be a list")
    return [str(v).strip() for v in value if str(v).strip()]


def config_from_dict(doc: Dict[str, Any], path: str = '<dict>') -> EngagementConfig:
    """Build an EngagementConfig from a parsed document. Raises ValueError on malformed content."""
    if not isinstance(doc, dict):
        raise ValueError(f"Engagement config {path} must be a mapping")
    raw_aors = doc.get('aors') or []
    if not isinstance(raw_aors, list) or not all(isinstance(a, dict) for a in raw_aors):
        raise ValueError(f"'aors' in {path} must be a list of mappings")
    try:
        lookback = int(doc.get('lookback_days', DEFAULT_LOOKBACK_DAYS))
        stale = int(doc.get('stale_days', DEFAULT_STALE_DAYS))
    except (TypeError, ValueError) as ex:
        raise ValueError(f"Invalid day window in {path}: {ex}")
    return EngagementConfig(
        team_members=_str_list(doc.get('team_members'), 'team_members', path),
        aors=[normalize_aor(a) for a in raw_aors],
        repositories=_str_list(doc.get('repositories'), 'repositories', path),
        lookback_days=lookback,
        stale_days=stale,
    )


def load_config(path: Optional[str] = None) -> EngagementConfig:
    """
    Load engagement configuration from YAML.
    Resolution order: explicit path, then $ENGAGEMENT_CONFIG, then config/engagement.yaml.
    A missing file yields the defaults (empty team, no AoRs).
    """
    if not path:
        path = os.getenv(CONFIG_ENV_VAR) or default_config_path()
    if not os.path.exists(path):
        return EngagementConfig()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except yaml.YAMLError as ex:
        raise ValueError(f"Failed to parse engagement config {path}: {ex}")
    return config_from_dict(doc, path)
