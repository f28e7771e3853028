"""Play session composition."""
