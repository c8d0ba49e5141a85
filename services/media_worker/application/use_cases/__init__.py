"""Use cases for the media worker."""

from .extract_thumbnail import ExtractThumbnailUseCase

__all__ = [
    "ExtractThumbnailUseCase",
]
