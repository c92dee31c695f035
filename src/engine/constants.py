"""Fixed analysis/synthesis constants shared by the engine."""

SAMPLE_RATE = 44100
FRAME_PERIOD_MS = 5.0
FRAMES_PER_SECOND = 1000.0 / FRAME_PERIOD_MS

# WORLD analysis
F0_FLOOR = 71.0
F0_CEIL = 1760.0
SPEC_Q1 = -0.15
FFT_SIZE = 2048
D4C_THRESHOLD = 0.25
SPECTRAL_CODE_DIMS = 64

DEFAULT_TAIL_PADDING_MS = 2000.0
SILENCE_ALIAS = "r"
INITIAL_ALIAS_MARKER = "-"
