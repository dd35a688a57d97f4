"""Train a PPO policy on the hummingbird environment."""

from __future__ import annotations

import argparse
import logging
import os

from stable_baselines3 import PPO
from stable_baselines3.common.env_util import make_vec_env

from .env import HummingbirdEnv


def evaluate_nectar(model: PPO, n_episodes: int = 10, max_steps: int = 1000) -> float:
    """Average nectar collected per episode by the deterministic policy."""
    env = HummingbirdEnv(render_mode=None, max_steps=max_steps)
    total = 0.0

    for _ in range(n_episodes):
        obs, _ = env.reset()
        done = False
        info = {}
        while not done:
            action, _ = model.predict(obs, deterministic=True)
            obs, reward, terminated, truncated, info = env.step(action)
            done = terminated or truncated
        total += info.get("nectar_obtained", 0.0)

    env.close()
    return total / n_episodes


def main() -> None:
    parser = argparse.ArgumentParser(description="Train PPO on the hummingbird environment")
    parser.add_argument("--timesteps", type=int, default=1_000_000)
    parser.add_argument("--chunk", type=int, default=50_000, help="Timesteps between evaluations")
    parser.add_argument("--n-envs", type=int, default=8)
    parser.add_argument("--max-steps", type=int, default=5000)
    parser.add_argument("--eval-episodes", type=int, default=10)
    parser.add_argument("--checkpoint-dir", type=str, default="checkpoints")
    parser.add_argument("--out", type=str, default="ppo_hummingbird")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-level", type=str, default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    os.makedirs(args.checkpoint_dir, exist_ok=True)

    # Vectorized env speeds up training
    env = make_vec_env(
        lambda: HummingbirdEnv(render_mode=None, max_steps=args.max_steps),
        n_envs=args.n_envs,
        seed=args.seed,
    )

    model = PPO(
        "MlpPolicy",
        env,
        verbose=1,
        n_steps=2048,
        batch_size=2048,
        gamma=0.99,
        learning_rate=3e-4,
        seed=args.seed,
    )

    best = evaluate_nectar(model, n_episodes=args.eval_episodes)
    print(f"Initial nectar per episode: {best:.3f}")

    trained = 0
    while trained < args.timesteps:
        chunk = min(args.chunk, args.timesteps - trained)
        model.learn(total_timesteps=chunk, reset_num_timesteps=False)
        trained += chunk

        nectar = evaluate_nectar(model, n_episodes=args.eval_episodes)
        print(f"[EVAL] timesteps={trained:,} nectar={nectar:.3f} (best {best:.3f})")

        if nectar > best:
            best = nectar
            ckpt_path = os.path.join(args.checkpoint_dir, f"ppo_hummingbird_{trained:08d}.zip")
            model.save(ckpt_path)
            print(f"[CHECKPOINT] Saved: {ckpt_path}")

    model.save(args.out)
    env.close()
    print(f"Saved model to {args.out}.zip")


if __name__ == "__main__":
    main()
