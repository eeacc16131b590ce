"""portforge: build packages from source recipes and track what is installed."""

__version__ = "0.3.0"
