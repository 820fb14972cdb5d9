"""
Video inspection infrastructure.

Reads introduction video durations with FFprobe so the submission
pipeline can enforce the maximum length.
"""

from .processor import (
    FFprobeVideoProbe,
    MockVideoProbe,
    VideoProbe,
    create_video_probe,
)

__all__ = [
    "FFprobeVideoProbe",
    "MockVideoProbe",
    "VideoProbe",
    "create_video_probe",
]
