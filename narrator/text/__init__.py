"""Text preparation modules: paragraph splitting and episode grouping."""

from .episodes import episode_ranges, group_episodes, summarize_episode
from .paragraphs import ParagraphSplitter, single_paragraph

__all__ = [
    "ParagraphSplitter",
    "episode_ranges",
    "group_episodes",
    "single_paragraph",
    "summarize_episode",
]
