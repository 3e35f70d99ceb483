"""Default sizes and limits shared by the scheduler, renderer and backend."""

# Interpolation
DEFAULT_INTERPOLATION_SECONDS = 1
MIN_INTERPOLATION_SECONDS = 1

# How long the last frame of a channel stays on screen
DEFAULT_TRAILING_SECONDS = 1.0

# Overlay canvases (pixels)
SPEEDOMETER_SIZE = (300, 300)
STATS_SIZE = (300, 220)
TRACK_MAP_SIZE = (300, 300)
TRACK_MAP_PADDING = 20.0
MARKER_RADIUS = 4

# Distance between an anchored overlay and the video edge
ANCHOR_MARGIN = 10

# Supersampling factor used when drawing dials
RENDER_SCALE = 4

SUPPORTED_LOCALES = ("en", "pt")
DEFAULT_LOCALE = "en"

OUTPUT_CODEC = "libx264"
OUTPUT_AUDIO_CODEC = "aac"
