"""Training plans: snapshot loading, deterministic edits and activation."""
