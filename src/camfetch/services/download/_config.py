"""
Configuration constants for camera downloads.
"""

# Consecutive progress query failures tolerated before a file fails
MAX_POLL_ERRORS = 5

# Position within this many seconds of the file end counts as complete
END_TOLERANCE_SECONDS = 1

# Container written by the Device API
MEDIA_EXTENSION = ".mp4"

# Target base name: {yyyymmdd}_{startEpoch}_{endEpoch}
TARGET_DATE_FORMAT = "%Y%m%d"
