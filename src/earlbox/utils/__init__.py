"""Utility modules for EarlBox."""

from earlbox.utils.media import sniff_content_type, sniff_content_type_from_path

__all__ = [
    "sniff_content_type",
    "sniff_content_type_from_path",
]
