"""StudyCircle peer-learning API."""
