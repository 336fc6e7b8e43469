"""Format tokens, codec profiles and quality tiers."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict

_PROFILES_PATH = Path(__file__).with_name("formats.yaml")


class VideoCodec(str, Enum):
    """Video codecs selected by the builders."""
    H264 = "libx264"
    VP9 = "libvpx-vp9"
    WEBP = "libwebp"
    PNG = "png"


class CodecProfile(BaseModel):
    """Encoder settings for one target format token."""
    model_config = ConfigDict(frozen=True)

    codec: str
    quality_flag: str = "-crf"
    preset: Optional[str] = None
    bitrate: Optional[str] = None

    def to_ffmpeg_args(self, quality: str) -> list[str]:
        """Convert to FFMPEG codec arguments at the given quality level."""
        args = ["-c:v", self.codec, self.quality_flag, quality]

        if self.preset:
            args.extend(["-preset", self.preset])

        if self.bitrate is not None:
            args.extend(["-b:v", self.bitrate])

        return args


IMAGE_EXTENSIONS = frozenset(
    {"jpg", "jpeg", "png", "webp", "bmp", "gif", "tiff", "ico"}
)

VIDEO_FORMATS = ["mp4", "avi", "mov", "mkv", "webm", "flv", "wmv", "m4v"]
AUDIO_FORMATS = ["mp3", "wav", "flac", "aac", "ogg", "wma", "m4a"]
IMAGE_FORMATS = ["jpg", "jpeg", "png", "webp", "bmp", "gif", "tiff", "ico"]

# Constant rate factor per named tier; lower is better quality.
CRF_BY_TIER = {"low": "28", "medium": "23", "high": "18"}
DEFAULT_CRF = "23"

# libwebp -quality per named tier; higher is better quality.
WEBP_QUALITY_BY_TIER = {"low": "60", "medium": "80", "high": "95"}
DEFAULT_WEBP_QUALITY = "80"

DEFAULT_ICO_SIZE = (32, 32)


@lru_cache(maxsize=1)
def load_codec_profiles(path: Optional[Path] = None) -> dict[str, CodecProfile]:
    """Load the format-to-codec table.

    Raises:
        ValueError: If the table is malformed or lacks a ``default`` entry.
    """
    with open(path or _PROFILES_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if not isinstance(data, dict):
        raise ValueError("codec profile table must be a mapping")
    if "default" not in data:
        raise ValueError("codec profile table has no 'default' entry")

    return {
        str(token).lower(): CodecProfile(**entry)
        for token, entry in data.items()
    }


def codec_profile_for(format_token: str) -> CodecProfile:
    """Return the profile for ``format_token``, falling back to ``default``."""
    profiles = load_codec_profiles()
    return profiles.get(format_token.lower(), profiles["default"])


def is_image_format(extension: str) -> bool:
    return extension.lower() in IMAGE_EXTENSIONS


def supported_formats() -> list[str]:
    """All output format tokens: video, then audio, then image."""
    return VIDEO_FORMATS + AUDIO_FORMATS + IMAGE_FORMATS
