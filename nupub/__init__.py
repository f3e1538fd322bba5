"""Publish NuGet packages from CI."""

__version__ = "0.3.0"
