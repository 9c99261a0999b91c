"""Infrastructure layer: settings, persistence and external collaborators."""
