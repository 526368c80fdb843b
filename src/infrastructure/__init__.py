"""
Infrastructure layer - external tools and service integrations.

Each subdirectory wraps an external dependency:
- download: yt-dlp (library and CLI) and plain HTTP fetching
- video: FFmpeg trimming
- storage: Object storage (R2/S3), the primary sink
- indexing: TwelveLabs video indexing, the secondary sink

binaries.py resolves the ffmpeg and yt-dlp executables once at startup.
"""
