"""Frame drawing and color grading."""
