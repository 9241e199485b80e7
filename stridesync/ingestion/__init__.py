"""Activity ingestion from the Garmin and Strava bridges."""
