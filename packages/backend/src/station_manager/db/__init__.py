"""Database engine, ORM models, and migrations."""
