"""AI stock recommendation interface."""
