"""Discord event listeners."""
