"""
Theme Catalog
=============

Maps a theme id to its five scene prompts.

Built-in themes come in two flavours: narrative themes whose scenes carry
their own reference image ids, and template themes whose prompts contain a
``[SUBJECT_DESCRIPTION]`` placeholder that is filled with the configured
subject (``"pet"`` by default). Extra themes can be loaded from YAML.
"""

import logging
from pathlib import Path
from typing import Optional, List, Dict, Any, Union

import yaml

from ..core.exceptions import InvalidThemeError, ConfigurationError
from ..core.models import SceneSpec, Theme

logger = logging.getLogger(__name__)


CLIPS_PER_THEME = 5
SUBJECT_PLACEHOLDER = "[SUBJECT_DESCRIPTION]"

# Appended to the scene prompt by clip position (1-based)
PROMPT_VARIATIONS = [
    "",
    "High quality rendering.",
    "Smooth animation.",
    "Professional quality.",
    "Cinematic style.",
]

_FANTASY_STYLE = (
    "Photorealistic high-fantasy scene in cinematic natural lighting with soft "
    "lens bokeh and magical realism tone."
)


# =============================================================================
# Built-in Themes
# =============================================================================


NARRATIVE_THEMES: Dict[str, Dict[str, Any]] = {
    "fairy-tale": {
        "title": "Fairy Tale",
        "scenes": [
            {
                "prompt": (
                    f"{_FANTASY_STYLE} A cute pet wakes up in a sun-dappled meadow filled with "
                    "floating golden pollen, soft breeze stirring wildflowers, and butterflies "
                    "drifting lazily. Camera Static shot, then slow zoom out"
                ),
            },
            {
                "prompt": (
                    f"{_FANTASY_STYLE} The pet cautiously enters a deep enchanted forest glowing "
                    "with bioluminescent mushrooms and twinkling fireflies. Cool bluish mist rolls "
                    "between tall ancient trees. Camera Pan right, tracking the pet."
                ),
            },
            {
                "prompt": (
                    f"{_FANTASY_STYLE} The pet stands at a mossy riverbank. A menacing frog-dragon "
                    "slowly rises its head above the water showing its teeth. pet looks fearfully "
                    "at frog-dragon"
                ),
                "references": ["FROG_DRAGON"],
            },
            {
                "prompt": (
                    f"{_FANTASY_STYLE} The pet sits still on the top of a glowing iridescent leaf "
                    "that moves left to right across a sparkling river. The frog-dragon swims "
                    "directly behind pet in the water. The riverbank in the background shifts from "
                    "mossy rocks to flowering trees, reflections rippling below. Wide side tracking "
                    "shot on @leaf moving across the river"
                ),
                "references": ["FROG_DRAGON", "LEAF"],
            },
            {
                "prompt": (
                    f"{_FANTASY_STYLE} A castle made of glassy crystal and blooming vines appears "
                    "through the trees. Forest creatures dance in a circle around the pet, petals "
                    "and confetti in the air. [Arc shot around the scene]"
                ),
            },
        ],
    },
    "crime-drama": {
        "title": "Crime Drama",
        "scenes": [
            {
                "prompt": (
                    "Film noir style: A tough-looking pet detective sits in a dimly lit office, "
                    "rain pattering against the window. Venetian blind shadows across the scene. "
                    "[Slow push in]"
                ),
            },
            {
                "prompt": (
                    "The pet detective walks down a foggy alley at night, street lamps creating "
                    "pools of light. Mysterious figure disappears around corner. "
                    "[Track forward following pet]"
                ),
            },
            {
                "prompt": (
                    "Close-up of pet's paw finding a mysterious glowing object hidden under "
                    "newspapers. Lightning flashes outside. [Tilt down to object, then zoom in]"
                ),
                "references": ["LEAF"],
            },
            {
                "prompt": (
                    "The pet runs through rain-slicked streets, jumping over obstacles. Neon signs "
                    "reflect in puddles. [Dynamic tracking shot]"
                ),
            },
            {
                "prompt": (
                    "The pet detective stands triumphantly on a rooftop at dawn, city skyline in "
                    "background. Wind ruffles their fur heroically. [Low angle hero shot, slow zoom out]"
                ),
            },
        ],
    },
    "superhero": {
        "title": "Superhero",
        "scenes": [
            {
                "prompt": (
                    "A regular pet discovers a glowing meteor in their backyard. As they touch it, "
                    "colorful energy swirls around them. [Orbit around pet]"
                ),
                "references": ["LEAF"],
            },
            {
                "prompt": (
                    "The pet transforms in a burst of light, now wearing a flowing cape and mask. "
                    "They test their new flying powers. [Vertical tilt following pet's ascent]"
                ),
            },
            {
                "prompt": (
                    "The superhero pet flies between skyscrapers, scanning the city for trouble. "
                    "Sun glints off glass buildings. [Aerial tracking shot]"
                ),
            },
            {
                "prompt": (
                    "The pet swoops down to save a kitten stuck in a tree, using super strength to "
                    "gently lift them to safety. [Arc shot around the rescue]"
                ),
            },
            {
                "prompt": (
                    "The superhero pet stands proudly on top of the tallest building, cape billowing "
                    "in the wind, city safe below. [Dramatic low angle, slow pull back to reveal cityscape]"
                ),
                "references": ["FROG_DRAGON"],
            },
        ],
    },
}

TEMPLATE_THEMES: Dict[str, Dict[str, Any]] = {
    "romance": {
        "title": "Romance",
        "scenes": [
            {"prompt": "Soft focus, a gentle [SUBJECT_DESCRIPTION] gazes longingly across a field of flowers at sunset. [Slow zoom in]"},
            {"prompt": "Another [SUBJECT_DESCRIPTION] approaches, holding a single rose. [Rack focus]"},
            {"prompt": "The first [SUBJECT_DESCRIPTION] turns, surprised and blushing, as the rose is offered. [Two shot]"},
            {"prompt": "They touch noses gently, bathed in the warm glow of the setting sun. [Close up]"},
            {"prompt": "The camera pulls back, showing the two silhouettes against the romantic sunset sky. [Crane shot up]"},
        ],
    },
    "sci-fi": {
        "title": "Sci-Fi",
        "scenes": [
            {"prompt": "A sleek [SUBJECT_DESCRIPTION] stands on the bridge of a starship, looking out at nebulae. [Wide shot]"},
            {"prompt": "Red alert lights flash as an alien vessel appears on the viewscreen. [Flashing lights, quick cuts]"},
            {"prompt": "The [SUBJECT_DESCRIPTION] calmly issues commands into a holographic interface. [Over the shoulder shot]"},
            {"prompt": "The starship fires bright energy beams at the alien ship. [Exterior shot, VFX]"},
            {"prompt": "The alien vessel explodes, and the [SUBJECT_DESCRIPTION] turns with a determined look. [Hero shot push in]"},
        ],
    },
}


def add_prompt_variation(prompt: str, clip_number: int) -> str:
    """
    Append the per-position variation for a 1-based clip number.

    Clip 1 gets no variation; numbers outside 1-5 are returned unchanged.
    """
    if 1 <= clip_number <= len(PROMPT_VARIATIONS):
        variation = PROMPT_VARIATIONS[clip_number - 1]
        if variation:
            return f"{prompt} {variation}"
    return prompt


# =============================================================================
# Catalog
# =============================================================================


class ThemeCatalog:
    """
    Lookup of theme id to scene list.

    Definitions are validated when a theme is requested, not when they are
    registered, so one malformed theme in a YAML file does not make the
    others unusable.

    Usage:
        catalog = ThemeCatalog()
        scenes = catalog.get_scenes("fairy-tale")
    """

    def __init__(
        self,
        themes: Optional[Dict[str, Dict[str, Any]]] = None,
        subject_description: str = "pet",
        include_builtin: bool = True,
    ):
        """
        Initialize the catalog.

        Args:
            themes: Extra or overriding theme definitions
            subject_description: Substituted for ``[SUBJECT_DESCRIPTION]``
            include_builtin: Start from the built-in themes
        """
        self.subject_description = subject_description
        self._definitions: Dict[str, Dict[str, Any]] = {}

        if include_builtin:
            self._definitions.update(NARRATIVE_THEMES)
            self._definitions.update(TEMPLATE_THEMES)
        if themes:
            self._definitions.update(themes)

    @classmethod
    def from_yaml(
        cls,
        path: Union[str, Path],
        subject_description: str = "pet",
        include_builtin: bool = True,
    ) -> "ThemeCatalog":
        """
        Load theme definitions from a YAML file.

        The file is either a mapping of theme id to definition, or has those
        under a top-level ``themes`` key. A definition is
        ``{title, scenes: [{prompt, references}]}``.
        """
        path = Path(path)
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not load themes from {path}: {e}", config_key="themes")

        if isinstance(data, dict) and isinstance(data.get("themes"), dict):
            data = data["themes"]
        if not isinstance(data, dict):
            raise ConfigurationError(f"Themes file {path} must contain a mapping", config_key="themes")

        logger.info(f"Loaded {len(data)} theme definition(s) from {path}")
        return cls(themes=data, subject_description=subject_description, include_builtin=include_builtin)

    def list_themes(self) -> List[str]:
        """Registered theme ids, sorted."""
        return sorted(self._definitions)

    def get_theme(self, theme_id: str) -> Theme:
        """
        Get a validated theme.

        Raises:
            InvalidThemeError: If the id is unknown or the theme does not
                have exactly five well-formed scenes
        """
        definition = self._definitions.get(theme_id)
        if definition is None:
            raise InvalidThemeError(f"Unknown theme: {theme_id!r}", theme_id=theme_id)

        raw_scenes = definition.get("scenes") if isinstance(definition, dict) else definition
        if not isinstance(raw_scenes, list) or len(raw_scenes) != CLIPS_PER_THEME:
            count = len(raw_scenes) if isinstance(raw_scenes, list) else 0
            logger.error(f"Theme {theme_id!r} has {count} scenes, expected {CLIPS_PER_THEME}")
            raise InvalidThemeError(
                f"Theme {theme_id!r} must have exactly {CLIPS_PER_THEME} scenes, got {count}",
                theme_id=theme_id,
            )

        scenes = [self._parse_scene(theme_id, raw) for raw in raw_scenes]
        title = definition.get("title", "") if isinstance(definition, dict) else ""
        return Theme(theme_id=theme_id, scenes=scenes, title=title or theme_id)

    def get_scenes(self, theme_id: str) -> List[SceneSpec]:
        """
        Get the five scenes for a theme.

        Raises:
            InvalidThemeError: See ``get_theme``
        """
        return list(self.get_theme(theme_id).scenes)

    def _parse_scene(self, theme_id: str, raw: Any) -> SceneSpec:
        if isinstance(raw, str):
            prompt, references = raw, []
        elif isinstance(raw, dict):
            prompt = raw.get("prompt") or raw.get("prompt_text")
            references = raw.get("references") or raw.get("reference_image_ids") or []
        else:
            prompt, references = None, []

        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidThemeError(f"Theme {theme_id!r} has a scene without a prompt", theme_id=theme_id)
        if isinstance(references, str):
            references = [references]
        elif not isinstance(references, (list, tuple)):
            raise InvalidThemeError(
                f"Theme {theme_id!r} has a scene with invalid references: {references!r}",
                theme_id=theme_id,
            )

        prompt = prompt.replace(SUBJECT_PLACEHOLDER, self.subject_description)
        return SceneSpec(prompt_text=prompt, reference_image_ids=[str(ref) for ref in references])
