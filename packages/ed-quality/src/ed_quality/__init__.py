"""Data-quality monitoring for emergency-department record feeds."""
