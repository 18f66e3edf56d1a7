"""
bionet module: render/colors.py

Central color palette.
"""

BG = (14, 14, 18)
TEXT = (235, 235, 235)

EXCITATORY = (80, 210, 140)
INHIBITORY = (220, 90, 90)

SENSOR = (80, 120, 230)
MOTOR = (230, 170, 60)
INTERNEURON = (150, 150, 165)


def shade(color, level: float):
    """Blend color toward white by level in [0, 1]."""
    level = max(0.0, min(1.0, level))
    return tuple(int(c + (255 - c) * level) for c in color)
