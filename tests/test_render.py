"""Headless tests for network drawing and behavior playback."""

import pygame
import pytest

from neural.behavior import Behavior
from neural.random_engine import RandomEngine
from render import colors
from render.playback import BehaviorPlayback
from render.renderer import NEURON_RADIUS, draw_hud, draw_network, layout_network


@pytest.fixture
def recorded(network):
    return Behavior.record(network, 6, RandomEngine(21))


def test_shade():
    assert colors.shade((0, 100, 200), 0.0) == (0, 100, 200)
    assert colors.shade((0, 100, 200), 1.0) == (255, 255, 255)
    assert colors.shade((0, 100, 200), 5.0) == (255, 255, 255)


def test_layout_places_every_neuron(network):
    positions = layout_network(network, 400, 300)
    assert sorted(positions) == list(range(network.num_neurons))
    for x, y in positions.values():
        assert 0 <= x <= 400 and 0 <= y <= 300
    # sensors on top, motors on the bottom
    assert positions[0][1] < positions[network.first_interneuron][1] < positions[2][1]


def test_draw_network_and_hud(network, recorded):
    pygame.font.init()
    try:
        surface = pygame.Surface((400, 300))
        surface.fill(colors.BG)
        positions = layout_network(network, 400, 300)
        font = pygame.font.Font(None, 14)
        draw_network(surface, network, positions, font)
        draw_hud(surface, font, recorded, 2, paused=True)
        x, y = positions[0]
        assert surface.get_at((int(x), int(y)))[:3] != colors.BG
        assert NEURON_RADIUS > 0
    finally:
        pygame.font.quit()


class TestBehaviorPlayback:
    def test_forward_replays_recording(self, network, recorded):
        playback = BehaviorPlayback(network, recorded)
        for step in range(len(recorded)):
            assert playback.forward()
            assert network.motor_activations() == recorded.motor_sequence[step]
        assert not playback.forward()
        assert playback.step == len(recorded)

    def test_seek(self, network, recorded):
        playback = BehaviorPlayback(network, recorded)
        playback.seek(4)
        assert playback.step == 4
        assert network.motor_activations() == recorded.motor_sequence[3]
        playback.seek(100)
        assert playback.step == len(recorded)

    def test_keys(self, network, recorded):
        playback = BehaviorPlayback(network, recorded)
        assert playback.paused
        playback.handle_key(pygame.K_RIGHT)
        playback.handle_key(pygame.K_RIGHT)
        assert playback.step == 2
        playback.handle_key(pygame.K_LEFT)
        assert playback.step == 1
        playback.handle_key(pygame.K_HOME)
        assert playback.step == 0
        playback.handle_key(pygame.K_SPACE)
        assert not playback.paused
        playback.handle_key(pygame.K_q)
        assert not playback.running

    def test_tick_runs_to_end_then_pauses(self, network, recorded):
        playback = BehaviorPlayback(network, recorded)
        playback.paused = False
        for _ in range(len(recorded) + 1):
            playback.tick()
        assert playback.step == len(recorded)
        assert playback.paused

    def test_quit_event(self, network, recorded):
        playback = BehaviorPlayback(network, recorded)
        playback.handle_event(pygame.event.Event(pygame.QUIT))
        assert not playback.running
