"""External AI collaborators: region detection and media URL extraction."""
