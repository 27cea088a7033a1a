"""Storyboard domain: projects, shots, frames and characters."""

from previz.storyboard.models import CharacterDefinition, Frame, Project, Shot

__all__ = ["CharacterDefinition", "Frame", "Project", "Shot"]
