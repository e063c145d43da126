"""Command line interface for twaforge."""
