"""Command-level services, the message pipeline and their wiring."""
