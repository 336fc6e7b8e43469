"""Pytest configuration for ffconvert tests.

Puts the project root on sys.path so ``import ffconvert`` works without
an install, and provides a fake transcoder: an executable Python script
that mimics the parts of FFMPEG's behaviour the engine relies on.
"""

import os
import stat
import sys
import textwrap

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


SAMPLE_DIAGNOSTICS = textwrap.dedent("""\
    Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mp4':
      Metadata:
        major_brand     : isom
      Duration: 00:00:10.00, start: 0.000000, bitrate: 1205 kb/s
      Stream #0:0[0x1](und): Video: h264 (High) (avc1 / 0x31637661), yuv420p(progressive), 1920x1080 [SAR 1:1 DAR 16:9], 1071 kb/s, 29.97 fps, 29.97 tbr, 30k tbn (default)
      Stream #0:1[0x2](und): Audio: aac (LC) (mp4a / 0x6134706D), 48000 Hz, stereo, fltp, 128 kb/s (default)
    At least one output file must be specified
""")


# Behaviour is selected with FAKE_FFMPEG_MODE:
#   ok     progress blocks, non-empty output, exit 0
#   slow   like ok but many blocks with pauses between them
#   long   like ok but first writes one 200 kB stdout line
#   empty  zero-byte output, exit 0
#   none   no output file, exit 0
#   fail   error text on stderr, exit 1
# FAKE_FFMPEG_ARGV, when set, names a file each invocation appends its
# argv to (one tab-separated line per call).
FAKE_FFMPEG_SCRIPT = '''\
#!{python}
import os
import sys
import time

DIAGNOSTICS = {diagnostics!r}

args = sys.argv[1:]
log = os.environ.get("FAKE_FFMPEG_ARGV")
if log:
    with open(log, "a", encoding="utf-8") as fh:
        fh.write("\\t".join(args) + "\\n")

if args == ["-version"]:
    print("ffmpeg version 6.1-fake Copyright (c) 2000-2023 the FFmpeg developers")
    sys.exit(0)

if args[:1] == ["-hide_banner"]:
    sys.stderr.write(DIAGNOSTICS)
    sys.exit(1)

mode = os.environ.get("FAKE_FFMPEG_MODE", "ok")
output = args[-1]

if mode == "fail":
    sys.stderr.write("Error opening input file clip.mp4.\\n")
    sys.exit(1)

if mode in ("ok", "slow", "long"):
    with open(output, "wb") as fh:
        fh.write(b"converted")
elif mode == "empty":
    open(output, "wb").close()

sys.stderr.write("Press [q] to stop, [?] for help\\n")
sys.stderr.write("frame=   10 fps=0.0 q=28.0 size=       0kB\\rframe=   20 fps=0.0\\r\\n")
sys.stderr.flush()

if "-progress" in args:
    blocks = 40 if mode == "slow" else 2
    if mode == "long":
        sys.stdout.write("stream_0=" + "x" * 200000 + "\\n")
    for i in range(1, blocks + 1):
        sys.stdout.write("frame=%d\\n" % (i * 30))
        sys.stdout.write("fps=30.0\\n")
        sys.stdout.write("out_time_us=%d\\n" % (i * 1000000))
        sys.stdout.write("speed=2.0x\\n")
        sys.stdout.write("progress=continue\\n")
        sys.stdout.flush()
        if mode == "slow":
            time.sleep(0.1)
    sys.stdout.write("progress=end\\n")
    sys.stdout.flush()

sys.exit(0)
'''


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Path to an executable fake transcoder."""
    script = tmp_path / "fake_ffmpeg.py"
    script.write_text(
        FAKE_FFMPEG_SCRIPT.format(python=sys.executable, diagnostics=SAMPLE_DIAGNOSTICS),
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def argv_log(tmp_path, monkeypatch):
    """File collecting the argv of every fake transcoder invocation."""
    log = tmp_path / "argv.log"
    monkeypatch.setenv("FAKE_FFMPEG_ARGV", str(log))

    def read() -> list[list[str]]:
        if not log.exists():
            return []
        return [line.split("\t") for line in log.read_text(encoding="utf-8").splitlines()]

    return read


class RecordingSink:
    """Event sink that keeps every event it receives."""

    def __init__(self, on_event=None):
        self.events: list[tuple[str, object]] = []
        self._on_event = on_event

    def __call__(self, event, payload):
        self.events.append((event, payload))
        if self._on_event:
            self._on_event(event, payload)

    def payloads(self, event: str) -> list:
        return [p for e, p in self.events if e == event]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_sink():
    """Factory for sinks with an ``on_event(event, payload)`` hook."""
    return RecordingSink
