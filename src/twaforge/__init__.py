"""twaforge: generate Trusted Web Activity Android projects from a PWA manifest."""

__version__ = "0.4.0"
