"""beliefsync command-line interface."""
