"""Media Sifter: animated GIF region editing service."""

__version__ = "0.1.0"
