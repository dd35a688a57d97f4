from __future__ import annotations

import argparse
import logging
import time

from .env import HummingbirdEnv


def main() -> None:
    parser = argparse.ArgumentParser(description="Random actions in the hummingbird environment")
    parser.add_argument("--render", action="store_true")
    parser.add_argument("--episodes", type=int, default=3)
    parser.add_argument("--max-steps", type=int, default=500)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    env = HummingbirdEnv(render_mode="human" if args.render else None, max_steps=args.max_steps)
    obs, info = env.reset(seed=args.seed)
    env.action_space.seed(args.seed)

    for ep in range(args.episodes):
        done = False
        total = 0.0
        while not done:
            action = env.action_space.sample()
            obs, reward, terminated, truncated, info = env.step(action)
            done = terminated or truncated
            total += reward
            if args.render:
                time.sleep(0.01)
        print(f"Episode {ep+1}: total_reward={total:.3f} nectar={info['nectar_obtained']:.3f}")
        obs, info = env.reset()

    env.close()


if __name__ == "__main__":
    main()
