"""Media metadata extraction and format tables."""

from .analyzer import MediaAnalyzer, MediaInfo, parse_media_info
from .formats import CodecProfile, codec_profile_for, supported_formats

__all__ = [
    "CodecProfile",
    "MediaAnalyzer",
    "MediaInfo",
    "codec_profile_for",
    "parse_media_info",
    "supported_formats",
]
