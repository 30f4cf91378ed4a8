"""Role-addressed, post-commit notifications."""
