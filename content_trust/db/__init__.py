"""Optional Postgres persistence."""
