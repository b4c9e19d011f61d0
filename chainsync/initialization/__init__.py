"""Process-level initialization helpers."""
