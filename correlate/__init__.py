"""
Correlate package: expose role classification and issue linking for PR activities and comments.
"""

from .linker import classify_activity, pr_author_map, pr_to_issues

__all__ = ["classify_activity", "pr_author_map", "pr_to_issues"]
