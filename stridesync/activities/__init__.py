"""Activity reconciliation: duplicate detection across platforms and workout matching."""
