"""Tests for the progress line decoder."""

import pytest

from ffconvert.executor.progress import ConversionProgress, parse_progress_line


class TestParseProgressLine:
    """Tests for parse_progress_line."""

    def test_full_stats_line(self):
        """A line carrying every key fills every field."""
        progress = parse_progress_line(
            "frame=120 fps=29.97 bitrate=1024.0kbits/s total_size=524288 "
            "out_time_us=4000000 speed=1.5x progress=continue"
        )
        assert progress == ConversionProgress(
            frame=120,
            fps=29.97,
            bitrate="1024.0kbits/s",
            total_size=524288,
            out_time_us=4000000,
            speed=1.5,
            progress="continue",
        )

    def test_frame_only(self):
        progress = parse_progress_line("frame=30")
        assert progress.frame == 30
        assert progress.progress is None
        assert progress.percentage is None

    def test_progress_only(self):
        progress = parse_progress_line("progress=end")
        assert progress.progress == "end"
        assert progress.frame is None

    def test_uninformative_lines(self):
        """Lines without frame or progress keys yield nothing."""
        assert parse_progress_line("fps=30.0") is None
        assert parse_progress_line("out_time_us=1000000") is None
        assert parse_progress_line("") is None
        assert parse_progress_line("Press [q] to stop") is None

    def test_unparseable_frame_is_dropped(self):
        assert parse_progress_line("frame=abc") is None
        assert parse_progress_line("frame=-3") is None

    def test_unparseable_values_become_none(self):
        progress = parse_progress_line(
            "frame=10 fps=N/A total_size=N/A out_time_us=N/A speed=N/A"
        )
        assert progress.frame == 10
        assert progress.fps is None
        assert progress.total_size is None
        assert progress.out_time_us is None
        assert progress.speed is None

    def test_unknown_keys_ignored(self):
        progress = parse_progress_line("frame=5 dup_frames=0 drop_frames=1")
        assert progress == ConversionProgress(frame=5)

    def test_speed_suffix_stripped(self):
        assert parse_progress_line("frame=1 speed=2.0x").speed == 2.0
        assert parse_progress_line("frame=1 speed=0.75").speed == 0.75


class TestPercentage:
    """Tests for percentage computation."""

    def test_half_way(self):
        progress = parse_progress_line("frame=60 out_time_us=5000000", total_duration=10.0)
        assert progress.percentage == pytest.approx(50.0)

    def test_clamped_to_hundred(self):
        progress = parse_progress_line("frame=60 out_time_us=12000000", total_duration=10.0)
        assert progress.percentage == 100.0

    def test_zero_time(self):
        progress = parse_progress_line("frame=0 out_time_us=0", total_duration=10.0)
        assert progress.percentage == 0.0

    def test_without_total_duration(self):
        progress = parse_progress_line("frame=60 out_time_us=5000000")
        assert progress.percentage is None

    def test_non_positive_total_duration(self):
        progress = parse_progress_line("frame=60 out_time_us=5000000", total_duration=0.0)
        assert progress.percentage is None

    def test_without_out_time(self):
        progress = parse_progress_line("frame=60", total_duration=10.0)
        assert progress.percentage is None

    def test_serializes_to_plain_dict(self):
        progress = parse_progress_line("frame=60 out_time_us=2500000", total_duration=10.0)
        data = progress.model_dump(mode="json")
        assert data["frame"] == 60
        assert data["percentage"] == pytest.approx(25.0)
        assert data["speed"] is None
