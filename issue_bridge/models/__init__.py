"""Account and request models."""
