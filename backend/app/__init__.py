"""beliefsync state service."""
