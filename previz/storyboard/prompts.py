"""
Prompt templates for the text and image models.
"""

from typing import List, Optional

from previz.core.constants import AspectRatio
from previz.storyboard.characters import ResolvedCharacter
from previz.storyboard.models import CharacterDefinition, Shot
from previz.storyboard.styles import camera_instructions, lens_setup

PLANNER_SYSTEM_PROMPT = """You are a professional film director and cinematographer breaking a script into storyboard shots. Describe exactly what the camera sees, nothing more.

RULES FOR SHOT DESCRIPTIONS:
- Describe only what is physically in the frame
- Include exact positions, distances and compositions
- No metaphor and no elements that are not in the script
- One clear focal point per shot
- Plan real camera setups

Respond with ONLY valid JSON, no markdown formatting or code blocks."""

PLANNER_USER_TEMPLATE = """Break this script into exactly {shot_count} storyboard shots. Each shot must be a specific camera setup that could be filmed.

For each shot provide:
1. visualDescription: literal description of what the camera captures (subject position, distance, action, background)
2. characters: array of character names in this frame only
3. location: the set or location with only relevant visible details
4. action: the single action this frame captures
5. emotionalTone: one or two words for the mood
6. shotType: Extreme Close-Up, Close-Up, Medium Close-Up, Medium Shot, Medium Wide Shot, Wide Shot or Extreme Wide Shot
7. cameraAngle: Eye Level, High Angle, Low Angle, Dutch Angle, Over-the-Shoulder or POV
8. lighting: simple lighting description
9. keyProps: only props visible in this frame
10. dialogue: exact dialogue during this shot, or "None"

SCRIPT:
{script_text}

GENRE: {genre}
TONE: {tone}

Return ONLY valid JSON:
{{"shots": [{{"shotNumber": 1, "visualDescription": "...", "characters": ["..."], "location": "...", "action": "...", "emotionalTone": "...", "shotType": "...", "cameraAngle": "...", "lighting": "...", "keyProps": "...", "dialogue": "..."}}]}}

The array must contain exactly {shot_count} shots."""

SHOT_PROMPT_SYSTEM_PROMPT = """You convert a filmmaker's free-text note about one storyboard shot into structured field updates. Only fill the fields the note actually changes; leave everything else empty."""

SHOT_PROMPT_TOOL = {
    "type": "function",
    "function": {
        "name": "update_shot",
        "description": "Structured updates for a single storyboard shot",
        "parameters": {
            "type": "object",
            "properties": {
                "visualDescription": {"type": "string"},
                "location": {"type": "string"},
                "action": {"type": "string"},
                "shotType": {"type": "string"},
                "cameraAngle": {"type": "string"},
                "lighting": {"type": "string"},
                "emotionalTone": {"type": "string"},
                "keyProps": {"type": "array", "items": {"type": "string"}},
                "characters": {"type": "array", "items": {"type": "string"}},
                "dialogue": {"type": "string"},
                "duration": {"type": "string"},
            },
        },
    },
}

NEGATIVE_PROMPT = (
    "STRICTLY EXCLUDE: border, frame, paper texture, page, margin, hands, pencil, "
    "UI, watermark, text, caption, signature, storyboard sheet, panel lines, "
    "sketchbook, annotations, labels, letterbox, black bars"
)


def build_planner_prompt(script_text: str, genre: str, tone: str, shot_count: int) -> str:
    return PLANNER_USER_TEMPLATE.format(
        shot_count=shot_count,
        script_text=script_text,
        genre=genre,
        tone=tone,
    )


def build_shot_prompt_request(prompt: str, shot: Shot) -> str:
    return (
        f"Current shot {shot.shot_number}:\n"
        f"- description: {shot.visual_description or shot.description}\n"
        f"- camera angle: {shot.camera_angle}\n"
        f"- shot type: {shot.shot_type}\n"
        f"- location: {shot.location}\n"
        f"- characters: {', '.join(shot.characters)}\n\n"
        f"Requested change:\n{prompt}"
    )


def _character_lines(characters: List[ResolvedCharacter]) -> List[str]:
    lines = []
    for character in characters:
        if character.definition is None:
            lines.append(f"- {character.name}")
            continue
        text = f"- {character.definition.name}: {character.definition.description}".rstrip(": ")
        if character.definition.traits:
            text += f" ({', '.join(character.definition.traits)})"
        lines.append(text)
    return lines


def build_frame_prompt(
    shot: Shot,
    style_prompt: str,
    aspect_ratio: AspectRatio,
    characters: List[ResolvedCharacter],
    visual_mood: str,
    genre: str = "",
    style_reference: Optional[str] = None
) -> str:
    """Assemble the image prompt for one shot."""
    camera = shot.camera_angle or shot.shot_type
    output_format = "9:16 vertical" if aspect_ratio == AspectRatio.TALL else "16:9 widescreen"
    character_lines = _character_lines(characters) or ["- none"]
    subject = f"{genre} film" if genre else "film"

    sections = [
        f"PROFESSIONAL FILM STORYBOARD FRAME - pre-production reference for a {subject}",
        camera_instructions(camera),
        "CAMERA:\n"
        f"Lens: {lens_setup(camera)}\n"
        f"Shot type: {shot.shot_type or camera or 'unspecified'}\n"
        f"Angle: {shot.camera_angle or 'eye level'}",
        "SCENE:\n"
        f"Location: {shot.location or shot.visual_elements or 'interior setting'}\n"
        f"Action: {shot.visual_description or shot.description or shot.action}\n"
        f"Lighting: {shot.lighting or 'natural'}\n"
        f"Mood: {visual_mood}",
        "CHARACTERS:\n" + "\n".join(character_lines),
    ]
    if shot.key_props:
        sections.append(f"PROPS: {', '.join(shot.key_props)}")
    if style_prompt:
        sections.append(f"STYLE: {style_prompt}")
    if style_reference:
        sections.append(f"STYLE REFERENCE: {style_reference}")
    sections.append(f"FORMAT: {output_format}, single frame, full bleed")
    sections.append(NEGATIVE_PROMPT)
    return "\n\n".join(sections)


STYLE_ANALYSIS_SYSTEM_PROMPT = """You are a visual style analyst writing art direction for a storyboard artist. Describe the style of the image you are shown, not its content:
- Art technique (photographic, illustrated, painted, animated)
- Color palette and saturation
- Lighting and mood
- Line work and texture
- Composition habits

Answer with a single paragraph that could be used as an image prompt."""

STYLE_ANALYSIS_REQUEST = (
    "Describe the visual style of this image as one paragraph prompt. "
    "Be specific about colors, lighting, technique and mood."
)


def build_style_analysis_messages(image_data: str) -> List[dict]:
    """Chat messages carrying the reference image as an image content part."""
    return [
        {"role": "system", "content": STYLE_ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": [
            {"type": "text", "text": STYLE_ANALYSIS_REQUEST},
            {"type": "image_url", "image_url": {"url": image_data}},
        ]},
    ]


def build_portrait_prompt(
    character: CharacterDefinition,
    style_prompt: str = "",
    genre: str = "",
    style_reference: Optional[str] = None
) -> str:
    """Image prompt for a character reference portrait."""
    subject = f"{genre} film" if genre else "film"
    lines = [
        f"CHARACTER REFERENCE PORTRAIT - {character.name} for a {subject}",
        f"Description: {character.description or 'as written in the script'}",
    ]
    if character.traits:
        lines.append(f"Traits: {', '.join(character.traits)}")
    if character.reference_image:
        lines.append("Keep the likeness of the person in the attached photo.")
    sections = [
        "\n".join(lines),
        "Head and shoulders, neutral background, even lighting, face clearly visible",
    ]
    if style_prompt:
        sections.append(f"STYLE: {style_prompt}")
    if style_reference:
        sections.append(f"STYLE REFERENCE: {style_reference}")
    sections.append("FORMAT: 2:3 portrait, single image, full bleed")
    sections.append(NEGATIVE_PROMPT)
    return "\n\n".join(sections)
