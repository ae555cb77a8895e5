"""Queue consumers, one per provider."""
