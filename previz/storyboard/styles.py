"""
Visual style vocabulary.

Art styles selectable per project or per frame, the genre/tone mood table,
and camera framing derived from a shot's camera angle text.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from previz.core.constants import AspectRatio


@dataclass(frozen=True)
class ArtStyle:
    """A selectable art style and the prompt text it contributes."""
    id: str
    name: str
    prompt_modifier: str


ART_STYLES: Dict[str, ArtStyle] = {
    style.id: style for style in [
        ArtStyle("comic", "Comic Book",
                 "comic book illustration style, bold ink lines, dynamic colors, graphic novel aesthetic"),
        ArtStyle("cinematic", "Cinematic",
                 "cinematic photograph, 35mm film, photorealistic, movie still"),
        ArtStyle("soft-pencil", "Soft Pencil",
                 "soft pencil sketch, graphite drawing, subtle shading, artistic sketch"),
        ArtStyle("animation-3d", "3D Animation",
                 "3D animated style, smooth rendering, vibrant colors"),
        ArtStyle("watercolor", "Watercolor",
                 "watercolor painting, flowing colors, artistic brushstrokes, painted illustration"),
        ArtStyle("charcoal", "Charcoal",
                 "charcoal drawing, dramatic shading, textured strokes, monochrome sketch"),
        ArtStyle("anime", "Anime",
                 "dark anime illustration, manga style, dramatic lighting, Japanese animation aesthetic"),
        ArtStyle("vector", "Vector",
                 "flat vector illustration, minimalist design, clean shapes, graphic design style"),
        ArtStyle("noir", "Film Noir",
                 "film noir aesthetic, high contrast black and white, dramatic shadows, classic cinema"),
        ArtStyle("stick-figure", "Stick Figure",
                 "stick figure illustration, simple line drawing, minimalist sketch, basic shapes"),
        ArtStyle("graphic-novel", "Graphic Novel",
                 "graphic novel illustration, detailed ink work, sequential art, professional comic book style"),
        ArtStyle("camera-diagram", "Camera Diagram",
                 "technical cinematography diagram, clean line art showing camera placement and resulting "
                 "shot framing, simple black and white line drawing, labeled camera angles"),
        ArtStyle("custom", "Custom", ""),
    ]
}

CUSTOM_STYLE_ID = "custom"

GENRE_TONE_STYLES: Dict[str, Dict[str, str]] = {
    "Drama": {
        "Emotional": "warm, intimate setting with soft lighting",
        "Serious": "muted tones, thoughtful composition",
        "Inspiring": "uplifting atmosphere with bright lighting",
        "Melancholic": "desaturated palette, lonely negative space",
    },
    "Comedy": {
        "Light-hearted": "bright, cheerful setting",
        "Satirical": "exaggerated expressions and poses",
        "Quirky": "unusual perspective, whimsical elements",
    },
    "Thriller": {
        "Mysterious": "dark shadows, high contrast lighting",
        "Suspenseful": "tense atmosphere with dramatic shadows",
        "Dark": "noir-style lighting with deep shadows",
    },
    "Action": {
        "Energetic": "dynamic poses, energetic composition",
        "Intense": "dramatic angles, high contrast",
        "Epic": "grand scale, heroic positioning",
    },
    "Horror": {
        "Dark": "eerie lighting, unsettling atmosphere",
        "Suspenseful": "disturbing elements, unnatural shadows",
        "Mysterious": "psychological tension, uncomfortable framing",
    },
    "Romance": {
        "Intimate": "soft, warm lighting with intimate positioning",
        "Uplifting": "gentle lighting, tender expressions",
        "Epic": "dramatic lighting, intense emotional connection",
    },
}

DEFAULT_VISUAL_STYLE = "clear, simple composition"

# Checked in order; longer phrases before the abbreviations they contain.
CAMERA_FRAMING: List[tuple] = [
    (("extreme close", "ecu"),
     "EXTREME CLOSE-UP FRAMING: Face detail only, eyes or mouth fill frame, minimal background visible"),
    (("medium close", "mcu"),
     "MEDIUM CLOSE-UP FRAMING: Chest and up visible, moderate background context, intimate feel"),
    (("close up", "close-up", "closeup", "cu"),
     "CLOSE-UP FRAMING: Head and shoulders only, subject fills frame, minimal background visible"),
    (("extreme wide", "ews"),
     "EXTREME WIDE SHOT FRAMING: Vast environment, characters are tiny or distant, epic scope"),
    (("over shoulder", "over-the-shoulder", "ots"),
     "OVER-SHOULDER FRAMING: Foreground shoulder and head, subject in background, conversational setup"),
    (("high angle", "bird"),
     "HIGH ANGLE FRAMING: Camera above subject looking down, vulnerability or overview perspective"),
    (("low angle",),
     "LOW ANGLE FRAMING: Camera below subject looking up, power or dominance, heroic feel"),
    (("medium", "ms"),
     "MEDIUM SHOT FRAMING: Waist and up visible, balanced subject and environment, conversational distance"),
    (("long shot", "full shot", "ls"),
     "LONG SHOT FRAMING: Full body visible head to toe, significant environmental context"),
    (("wide", "ws", "establishing"),
     "WIDE SHOT FRAMING: Full environment emphasis, characters smaller in frame, location is primary"),
]

STANDARD_FRAMING = "STANDARD FRAMING: Balanced composition appropriate for narrative, professional film framing"


def _matches(angle: str, keyword: str) -> bool:
    # Short abbreviations must match whole words ("ms" is not in "dreams")
    if len(keyword) <= 3:
        return keyword in angle.replace("-", " ").replace("/", " ").split()
    return keyword in angle


def camera_instructions(camera_angle: str) -> str:
    """Framing instructions for a camera angle description."""
    angle = (camera_angle or "").lower()
    for keywords, instructions in CAMERA_FRAMING:
        if any(_matches(angle, keyword) for keyword in keywords):
            return instructions
    return STANDARD_FRAMING


def lens_setup(camera_angle: str) -> str:
    angle = (camera_angle or "").lower()
    if "close" in angle:
        return "85mm portrait lens, f/2.0"
    if "medium" in angle:
        return "50mm standard lens, f/2.8"
    if "wide" in angle:
        return "24mm wide lens, f/4.0"
    return "50mm lens, f/2.8"


def visual_style_for(genre: str, tone: str) -> str:
    """Mood text for a genre/tone pair."""
    return GENRE_TONE_STYLES.get(genre or "", {}).get(tone or "", DEFAULT_VISUAL_STYLE)


def style_prompt_for(style_id: str, custom_text: str = "") -> str:
    """
    Prompt modifier for an art style id.

    Unknown ids are treated as literal style text so callers can pass a
    free-form style directly.
    """
    if not style_id:
        return custom_text or ""
    if style_id == CUSTOM_STYLE_ID:
        return custom_text or ""
    style = ART_STYLES.get(style_id)
    return style.prompt_modifier if style else style_id


def resolve_style_prompt(
    project_style: str,
    project_custom_style: str = "",
    frame_override: Optional[str] = None
) -> str:
    """A per-frame override takes precedence over the project default."""
    if frame_override:
        return style_prompt_for(frame_override)
    return style_prompt_for(project_style, project_custom_style)


def image_size_for(aspect_ratio: AspectRatio) -> str:
    return "1024x1536" if aspect_ratio == AspectRatio.TALL else "1536x1024"
