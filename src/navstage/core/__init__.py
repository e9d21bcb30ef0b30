"""Navigation tree core: building, projection, mutation, persistence."""
