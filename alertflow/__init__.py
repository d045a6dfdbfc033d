"""alertflow - canonical alert records with a change-feed notification pipeline."""

__version__ = "0.1.0"
