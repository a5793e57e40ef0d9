"""CLI subcommands for rangekeeper."""
