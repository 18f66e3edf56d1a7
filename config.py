"""
Network morphogenesis tuning knobs.
"""

# Network construction
DEFAULT_INHIBITOR_DENSITY = 0.25
DEFAULT_SYNAPSE_PROPENSITY = 0.1
DEFAULT_MIN_SYNAPSE_WEIGHT = 0.0
DEFAULT_MAX_SYNAPSE_WEIGHT = 1.0
DEFAULT_RANDOM_SEED = 4517

# Logistic squashing: x -> 1 / (1 + exp(-(x * LOGISTIC_GAIN + LOGISTIC_SHIFT)))
LOGISTIC_GAIN = 8.0
LOGISTIC_SHIFT = -4.0

# Evaluation
MAX_ERROR_TOLERANCE = 0.05

# Morphogenesis
DEFAULT_CROSSOVER_BOND_STRENGTH = 0.5
DEFAULT_OPTIMIZED_PATH_LENGTH = 2
NETWORK_FILE_PREFIX = "network_"

# External simulator polling
SIMULATOR_POLL_INTERVAL = 0.1  # seconds
SIMULATOR_POLL_TRIES = 10000

# Playback window
SCREEN_W, SCREEN_H = 980, 720
PLAYBACK_FPS = 4
