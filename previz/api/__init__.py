"""HTTP API for the storyboard pipeline."""
