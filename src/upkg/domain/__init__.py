"""Domain types shared by backends, services and persistence."""
