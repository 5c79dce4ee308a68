"""Domain models for tokens, registrations and subject records."""
