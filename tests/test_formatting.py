import pytest
from rich.console import Console

from bilifetch.cli.formatters import build_quality_table, format_error_with_suggestions
from bilifetch.exceptions import PoolExhaustedError
from bilifetch.models.media import QualityInfo
from bilifetch.utils.formatting import (
    build_merge_command,
    format_duration,
    format_size,
    format_speed,
)


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (-5, "0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (5 * 1024**3, "5.0 GB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_format_speed():
    assert format_speed(2.5 * 1024 * 1024) == "2.5 MB/s"


@pytest.mark.parametrize(
    "seconds, expected", [(0, "0s"), (59.9, "59s"), (61, "1m 1s"), (3600, "1h"), (9252, "2h 34m 12s")]
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_merge_command_quotes_paths():
    assert build_merge_command("/a b/v.m4v", "/a b/a.m4a", "/a b/m.mp4") == (
        'ffmpeg -i "/a b/v.m4v" -i "/a b/a.m4a" -c copy "/a b/m.mp4"'
    )


def render(renderable) -> str:
    console = Console(width=120, record=True)
    console.print(renderable)
    return console.export_text()


def test_error_panel_includes_suggestions():
    text = render(format_error_with_suggestions(PoolExhaustedError("no free browser")))
    assert "PoolExhaustedError: no free browser" in text
    assert "pool_size" in text


def test_quality_table_marks_current_quality():
    table = build_quality_table(
        [
            QualityInfo.for_code(80, width=1920, height=1080),
            QualityInfo.for_code(64, has_audio=True),
        ],
        current=64,
    )
    text = render(table)
    assert "1920x1080" in text
    assert "720P ◀" in text
    assert "muxed" in text
