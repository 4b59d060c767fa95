"""Task-level utilities (image captioning, source review, export)."""

from .captioner import ImageItem, caption_images, list_images, write_captions
from .export import export_html
from .source_review import build_review_question, collect_sources, guess_extensions

__all__ = [
    "ImageItem",
    "build_review_question",
    "caption_images",
    "collect_sources",
    "export_html",
    "guess_extensions",
    "list_images",
    "write_captions",
]
