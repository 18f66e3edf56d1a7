"""
bionet module: render/playback.py

Behavior playback: replays a behavior's sensor inputs through a network one
step at a time, driven by key presses.
"""

from __future__ import annotations
import pygame

import config
from neural.behavior import Behavior
from neural.network import Network
from render import colors
from render.renderer import draw_hud, draw_network, layout_network


class BehaviorPlayback:
    def __init__(self, network: Network, behavior: Behavior):
        self.network = network
        self.behavior = behavior
        self.step = 0
        self.paused = True
        self.running = True
        self.network.clear()

    def forward(self) -> bool:
        if self.step >= len(self.behavior):
            return False
        self.network.set_sensors(self.behavior.sensor_sequence[self.step])
        self.network.step()
        self.step += 1
        return True

    def seek(self, step: int) -> None:
        """Replay from a cleared network up to `step`."""
        step = max(0, min(len(self.behavior), step))
        self.network.clear()
        self.step = 0
        while self.step < step:
            self.forward()

    def tick(self) -> None:
        if not self.paused and not self.forward():
            self.paused = True

    def handle_key(self, key: int) -> None:
        if key == pygame.K_SPACE:
            self.paused = not self.paused
        elif key == pygame.K_RIGHT:
            self.paused = True
            self.forward()
        elif key == pygame.K_LEFT:
            self.paused = True
            self.seek(self.step - 1)
        elif key == pygame.K_HOME:
            self.seek(0)
        elif key in (pygame.K_ESCAPE, pygame.K_q):
            self.running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.running = False
        elif event.type == pygame.KEYDOWN:
            self.handle_key(event.key)


def run_playback(network: Network, behavior: Behavior) -> None:
    pygame.init()
    screen = pygame.display.set_mode((config.SCREEN_W, config.SCREEN_H))
    pygame.display.set_caption("bionet (behavior playback)")
    clock = pygame.time.Clock()
    font = pygame.font.Font(None, 20)

    playback = BehaviorPlayback(network, behavior)
    positions = layout_network(network, config.SCREEN_W, config.SCREEN_H)
    try:
        while playback.running:
            for event in pygame.event.get():
                playback.handle_event(event)
            playback.tick()

            screen.fill(colors.BG)
            draw_network(screen, network, positions, font)
            draw_hud(screen, font, behavior, playback.step, playback.paused)
            pygame.display.flip()
            clock.tick(config.PLAYBACK_FPS)
    finally:
        pygame.quit()
