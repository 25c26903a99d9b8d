"""
vidworker: fetch videos with yt-dlp, derive audio/thumbnails with ffmpeg,
store everything in a bucket and hand back public URLs.
"""

__version__ = "1.0.0"
