"""
previz - storyboard content pipeline for independent film production.

Script -> shot breakdown -> per-frame image generation -> editable storyboard.
"""

__version__ = "1.0.0"
