"""
Previz Constants

Enumerations and fixed values shared across the pipeline.
"""

from enum import Enum


class AspectRatio(Enum):
    """Frame aspect ratios offered to the user."""
    WIDE = "16:9"
    TALL = "9:16"

    @classmethod
    def parse(cls, value) -> "AspectRatio":
        """Accept an AspectRatio, its value ("16:9") or its name ("wide")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.lower() == member.name.lower():
                return member
        raise ValueError(f"Unknown aspect ratio: {value!r}")


class FrameStatus(Enum):
    """Lifecycle of a single frame."""
    PENDING = "pending"
    GENERATING = "generating"
    RENDERED = "rendered"
    ERRORED = "errored"


# Shot planning
WORDS_PER_SHOT = 150
MIN_SHOTS = 6
MAX_SHOTS = 24
QUICK_STORYBOARD_SHOTS = 6

# Batch rendering
DEFAULT_RENDER_DELAY_SECONDS = 1.0

# Ingestion
OCR_CACHE_TTL_SECONDS = 300
MIME_TEXT = "text/plain"
MIME_PDF = "application/pdf"
SUPPORTED_SCRIPT_TYPES = {
    MIME_TEXT: (".txt",),
    MIME_PDF: (".pdf",),
}

GENRES = [
    "Drama", "Comedy", "Action", "Thriller", "Horror", "Romance",
    "Sci-Fi", "Fantasy", "Mystery", "Documentary", "Musical",
]

TONES = [
    "Serious", "Light-hearted", "Dark", "Uplifting", "Suspenseful",
    "Melancholic", "Energetic", "Intimate", "Epic", "Mysterious",
]

# Persistence
PROJECTS_TABLE = "storyboard_projects"
