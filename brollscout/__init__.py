"""B-Roll Scout - plan B-roll overlays for local media with AI.

Analyzes local images and videos with Google's Gemini, remembers what it
has already analyzed in a JSON cache, and asks for timestamped B-roll
overlay suggestions guided by a marketing-context document.

CLI Usage:
    $ broll-scout config set-key
    $ broll-scout run --media-dir ./media --marketing marketing.md
    $ broll-scout cache show
"""

__version__ = "0.1.0"

from brollscout.models import (
    BrollOverlay,
    BrollSuggestion,
    BrollSuggestions,
    MediaItem,
    MediaKind,
)

__all__ = [
    "__version__",
    "MediaItem",
    "MediaKind",
    "BrollOverlay",
    "BrollSuggestion",
    "BrollSuggestions",
]
