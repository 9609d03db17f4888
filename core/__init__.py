"""Process and configuration helpers shared by the build tooling."""
