"""Access app package: time-bounded credentials tied to a reservation."""
