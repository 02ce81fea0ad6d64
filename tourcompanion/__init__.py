"""TourCompanion — creator dashboard aggregation and notifications."""
