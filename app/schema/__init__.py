"""Schema package: ORM tables and API payload models."""
