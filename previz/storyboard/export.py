"""
Shot list export for production paperwork.
"""

import csv
import io
import json

from previz.storyboard.models import Project

SHOT_LIST_COLUMNS = [
    "shot_number", "shot_type", "camera_angle", "location", "characters",
    "action", "dialogue", "lighting", "key_props", "duration", "frame_status",
]


def _row(project: Project, shot) -> dict:
    return {
        "shot_number": shot.shot_number,
        "shot_type": shot.shot_type,
        "camera_angle": shot.camera_angle,
        "location": shot.location,
        "characters": ", ".join(shot.characters),
        "action": shot.action or shot.description,
        "dialogue": shot.dialogue,
        "lighting": shot.lighting,
        "key_props": ", ".join(shot.key_props),
        "duration": shot.duration,
        "frame_status": project.frame_status(shot.shot_number).value,
    }


def export_shot_list_csv(project: Project) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=SHOT_LIST_COLUMNS)
    writer.writeheader()
    for shot in project.shots:
        writer.writerow(_row(project, shot))
    return buffer.getvalue()


def export_shot_list_json(project: Project) -> str:
    return json.dumps(
        {
            "project_id": project.id,
            "genre": project.genre,
            "tone": project.tone,
            "shots": [_row(project, shot) for shot in project.shots],
        },
        indent=2,
    )
