"""Fly the hummingbird with the keyboard.

W/S forward/back, A/D left/right, E/Q up/down, arrow keys pitch and yaw,
space freezes the bird, escape quits.
"""

from __future__ import annotations

import argparse
import logging

import pygame

from .agent import ManualInput
from .env import HummingbirdEnv

KEY_NAMES = {
    "w": pygame.K_w,
    "s": pygame.K_s,
    "a": pygame.K_a,
    "d": pygame.K_d,
    "e": pygame.K_e,
    "q": pygame.K_q,
    "up": pygame.K_UP,
    "down": pygame.K_DOWN,
    "left": pygame.K_LEFT,
    "right": pygame.K_RIGHT,
}


def pressed_keys() -> dict:
    state = pygame.key.get_pressed()
    return {name: bool(state[key]) for name, key in KEY_NAMES.items()}


def main() -> None:
    parser = argparse.ArgumentParser(description="Manual hummingbird play")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    env = HummingbirdEnv(render_mode="human", training_mode=False)
    env.reset(seed=args.seed)
    env.render()

    try:
        while env.window_open:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    return
                if event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        return
                    if event.key == pygame.K_SPACE:
                        if env.agent.frozen:
                            env.agent.unfreeze_agent()
                        else:
                            env.agent.freeze_agent()

            controls = ManualInput.from_keys(pressed_keys())
            action = env.agent.heuristic(controls)
            env.step(action)
    finally:
        print(f"Nectar obtained: {env.agent.nectar_obtained:.2f}")
        env.close()


if __name__ == "__main__":
    main()
