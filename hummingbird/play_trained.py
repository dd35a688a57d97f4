"""Replay a trained PPO policy with the top-down viewer."""

from __future__ import annotations

import argparse
import logging
import time

from stable_baselines3 import PPO

from .env import HummingbirdEnv


def main() -> None:
    parser = argparse.ArgumentParser(description="Watch a trained hummingbird")
    parser.add_argument("--model", type=str, default="ppo_hummingbird")
    parser.add_argument("--episodes", type=int, default=5)
    parser.add_argument("--max-steps", type=int, default=2000)
    parser.add_argument("--delay", type=float, default=0.0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    env = HummingbirdEnv(render_mode="human", max_steps=args.max_steps)
    model = PPO.load(args.model)

    for ep in range(args.episodes):
        obs, _ = env.reset()
        done = False
        total = 0.0
        info = {}

        while not done:
            action, _ = model.predict(obs, deterministic=True)
            obs, reward, terminated, truncated, info = env.step(action)
            done = terminated or truncated
            total += reward
            if args.delay:
                time.sleep(args.delay)

        print(f"Episode {ep+1}: total_reward={total:.3f} nectar={info.get('nectar_obtained', 0.0):.3f}")

    env.close()


if __name__ == "__main__":
    main()
