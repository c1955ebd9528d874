"""REST API for the marketplace booking lifecycle."""
