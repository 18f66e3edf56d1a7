"""
bionet module: render/renderer.py

Pygame drawing of a network (top-down): sensors along the top, motors
along the bottom, interneurons on a ring between them.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple
import math
import pygame

from neural.behavior import Behavior
from neural.network import Network
from neural.neuron import NeuronType
from render import colors

Point = Tuple[float, float]

NEURON_RADIUS = 12


def _row(count: int, y: float, width: float) -> List[Point]:
    gap = width / (count + 1)
    return [(gap * (k + 1), y) for k in range(count)]


def layout_network(network: Network, width: float, height: float) -> Dict[int, Point]:
    positions: Dict[int, Point] = {}
    margin = NEURON_RADIUS * 3
    for k, p in enumerate(_row(network.num_sensors, margin, width)):
        positions[k] = p
    for k, p in enumerate(_row(network.num_motors, height - margin, width)):
        positions[network.num_sensors + k] = p

    count = network.num_interneurons
    cx, cy = width / 2.0, height / 2.0
    radius = max(0.0, min(width, height) / 2.0 - margin * 2)
    for k in range(count):
        a = 2.0 * math.pi * k / count
        positions[network.first_interneuron + k] = (cx + radius * math.cos(a), cy + radius * math.sin(a))
    return positions


def _role_color(network: Network, index: int):
    role = network.neuron_type(index)
    if role == NeuronType.SENSOR:
        return colors.SENSOR
    if role == NeuronType.MOTOR:
        return colors.MOTOR
    return colors.INTERNEURON


def draw_network(
    screen: pygame.Surface,
    network: Network,
    positions: Dict[int, Point],
    font: Optional[pygame.font.Font] = None,
) -> None:
    # synapses first
    for i, j, syns in network.pairs():
        col = colors.EXCITATORY if network.neurons[i].excitatory else colors.INHIBITORY
        width = max(1, min(5, int(abs(syns[0].weight) * 3)))
        a, b = positions[i], positions[j]
        pygame.draw.line(screen, col, (int(a[0]), int(a[1])), (int(b[0]), int(b[1])), width)

    for neuron in network.neurons:
        x, y = positions[neuron.index]
        col = colors.shade(_role_color(network, neuron.index), neuron.activation)
        pygame.draw.circle(screen, col, (int(x), int(y)), NEURON_RADIUS)
        if not neuron.excitatory:
            pygame.draw.circle(screen, colors.INHIBITORY, (int(x), int(y)), NEURON_RADIUS + 3, 2)
        if font is not None:
            txt = font.render(neuron.label or str(neuron.index), True, colors.TEXT)
            screen.blit(txt, (x + NEURON_RADIUS + 2, y - NEURON_RADIUS - 2))


def draw_hud(screen: pygame.Surface, font: pygame.font.Font, behavior: Behavior, step: int, paused: bool) -> None:
    lines = [
        f"Step: {step}/{len(behavior)}{'  (paused)' if paused else ''}",
        "space=pause  left/right=step  home=rewind  esc=quit",
    ]
    if 0 < step <= len(behavior):
        lines.append("sensors: " + " ".join(f"{v:0.2f}" for v in behavior.sensor_sequence[step - 1]))
        lines.append("target motors: " + " ".join(f"{v:0.2f}" for v in behavior.motor_sequence[step - 1]))

    y = 10
    for line in lines:
        txt = font.render(line, True, colors.TEXT)
        screen.blit(txt, (12, y))
        y += 22
