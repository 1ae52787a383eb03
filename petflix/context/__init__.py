"""
Context Management
==================

State that shapes a run but is not part of it: which prompts a theme uses,
which reference images exist, what has already been made and what it cost.

Components:
- ThemeCatalog: Theme id to five scene prompts
- ReferenceLibrary: Reference image ids to files
- ContentCache: Finished videos by input fingerprint
- BudgetTracker: Persistent spend cap
"""

from .themes import ThemeCatalog, add_prompt_variation, PROMPT_VARIATIONS, CLIPS_PER_THEME
from .references import ReferenceLibrary, ReferenceImage
from .cache import ContentCache
from .budget import BudgetTracker

__all__ = [
    "ThemeCatalog",
    "add_prompt_variation",
    "PROMPT_VARIATIONS",
    "CLIPS_PER_THEME",
    "ReferenceLibrary",
    "ReferenceImage",
    "ContentCache",
    "BudgetTracker",
]
