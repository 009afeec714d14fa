"""CLI commands for cumulus-aws."""
