"""Runtime configuration and binary resolution.

The host application may run with a narrowed ``PATH`` that excludes
user-local install directories, so tool lookup falls back to a list of
well-known locations before giving up and returning the bare tool name.
A bare name that cannot be spawned surfaces later as
:class:`~ffconvert.errors.FFmpegNotFoundError`.
"""

import os
import pathlib
import platform
import shutil
from dataclasses import dataclass, field
from typing import Optional


def _build_search_dirs() -> list[pathlib.Path]:
    """Directories where package managers commonly drop ffmpeg builds."""
    home = pathlib.Path.home()
    dirs: list[pathlib.Path] = []
    system = platform.system()

    if system == "Windows":
        dirs.append(home / "scoop" / "shims")
        programdata = os.environ.get("PROGRAMDATA")
        if programdata:
            # Chocolatey
            dirs.append(pathlib.Path(programdata) / "chocolatey" / "bin")
        dirs.append(pathlib.Path("C:/ffmpeg/bin"))
    else:
        dirs.append(home / ".local" / "bin")
        dirs.append(pathlib.Path("/usr/local/bin"))
        dirs.append(pathlib.Path("/usr/bin"))
        if system == "Darwin":
            dirs.append(pathlib.Path("/opt/homebrew/bin"))

    return dirs


_EXTRA_SEARCH_DIRS = _build_search_dirs()


def resolve_binary(name: str, explicit: Optional[str] = None) -> str:
    """Return the path to use when spawning ``name``.

    Parameters
    ----------
    name : str
        Tool name, e.g. ``"ffmpeg"``.
    explicit : str, optional
        Configured path; returned unchanged when given.

    Returns
    -------
    str
        ``explicit`` if set, otherwise the first hit on ``PATH`` or in a
        well-known directory, otherwise ``name`` itself.
    """
    if explicit:
        return explicit

    found = shutil.which(name)
    if found:
        return found

    candidates = [name]
    if platform.system() == "Windows":
        candidates.append(f"{name}.exe")
    for directory in _EXTRA_SEARCH_DIRS:
        for candidate in candidates:
            path = directory / candidate
            if path.is_file():
                return str(path)

    return name


@dataclass
class ConverterConfig:
    """Configuration for a :class:`~ffconvert.converter.MediaConverter`."""
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    progress_target: str = "pipe:1"
    downloads_dir: pathlib.Path = field(
        default_factory=lambda: pathlib.Path.home() / "Downloads"
    )
    terminate_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "ConverterConfig":
        """Build a config from ``FFCONVERT_*`` environment variables."""
        config = cls(
            ffmpeg_path=os.environ.get("FFCONVERT_FFMPEG") or None,
            ffprobe_path=os.environ.get("FFCONVERT_FFPROBE") or None,
        )
        downloads = os.environ.get("FFCONVERT_DOWNLOADS_DIR")
        if downloads:
            config.downloads_dir = pathlib.Path(downloads).expanduser()
        return config

    def resolved_ffmpeg(self) -> str:
        return resolve_binary("ffmpeg", self.ffmpeg_path)

    def resolved_ffprobe(self) -> str:
        return resolve_binary("ffprobe", self.ffprobe_path)
