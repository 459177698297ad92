"""Database models for the narrative engine."""
