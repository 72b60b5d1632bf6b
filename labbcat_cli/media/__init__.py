"""
Media Processing Layer.

This package is responsible for fetching media and transcript fragments and
saving them to local storage.
"""

from .downloader import FragmentDownloader

__all__ = ["FragmentDownloader"]
