"""Building blocks for a streaming-music client: identifiers, credentials, cache, channels and discovery."""

__version__ = "0.3.1"