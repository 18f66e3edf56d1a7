"""
bionet module: neural/synapse.py
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass
class Synapse:
    weight: float = 0.0
    signal: float = 0.0  # last propagated source activation, sign-adjusted
    label: str = ""
