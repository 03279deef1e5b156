"""Command-line tools for Media Sifter."""
