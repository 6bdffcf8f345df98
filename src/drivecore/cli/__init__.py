"""Command-line interface for drivecore."""
