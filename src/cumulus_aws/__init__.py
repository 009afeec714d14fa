"""AWS resource lifecycle plugin: client retry configuration, tag reconciliation and managed resources."""

__version__ = "0.1.0"
