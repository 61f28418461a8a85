"""Consumer tool directories that skills are linked into."""
