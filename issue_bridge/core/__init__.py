"""Configuration, logging, result cache and dependency wiring."""
