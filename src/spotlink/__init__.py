"""SpotLink - federates a local media catalog with the Spotify catalog."""

__version__ = "0.1.0"
