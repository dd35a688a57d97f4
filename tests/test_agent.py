import logging
import math

import numpy as np
import pytest

from hummingbird import config
from hummingbird import geometry as geo
from hummingbird.agent import ManualInput
from hummingbird.exceptions import FlowerNotFoundError, SafePlacementError, TrainingModeError
from hummingbird.flower import Flower
from hummingbird.scene import PhysicsWorld, SceneNode, SphereCollider


def _beak_at(agent, point):
    """Move the body so its beak tip sits on ``point``."""
    agent.body.position = np.asarray(point, dtype=float) - agent.body.forward * agent.beak_length


# ------------------------------------------------------------------ #
# Nearest flower
# ------------------------------------------------------------------ #
def test_nearest_flower_is_closest_with_nectar(make_area, make_agent):
    area = make_area([(0.0, 0.0, 2.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0)])
    agent = make_agent(area)

    assert agent.update_nearest_flower() is area.flowers[1]
    assert agent.nearest_flower_index == 1


def test_nearest_flower_skips_depleted_flowers(make_area, make_agent):
    area = make_area([(0.0, 0.0, 2.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0)])
    agent = make_agent(area)
    area.flowers[1].feed(1.0)

    assert agent.update_nearest_flower() is area.flowers[2]


def test_nearest_flower_ties_go_to_first_scanned(make_area, make_agent):
    area = make_area([(1.0, 0.0, 0.09), (-1.0, 0.0, 0.09)])
    agent = make_agent(area)

    assert agent.update_nearest_flower() is area.flowers[0]


def test_nearest_flower_is_none_when_everything_is_empty(make_area, make_agent):
    area = make_area([(0.0, 0.0, 1.0), (0.0, 0.0, 2.0)])
    agent = make_agent(area)
    agent.update_nearest_flower()
    for flower in area.flowers:
        flower.feed(2.0)

    assert agent.update_nearest_flower() is None
    assert agent.nearest_flower is None


def test_fixed_update_moves_on_when_nearest_flower_is_emptied(make_area, make_agent):
    area = make_area([(0.0, 0.0, 1.0), (0.0, 0.0, 2.0)])
    agent = make_agent(area)
    agent.update_nearest_flower()

    # Emptied by someone else
    area.flowers[0].feed(1.0)
    agent.fixed_update()

    assert agent.nearest_flower is area.flowers[1]


# ------------------------------------------------------------------ #
# Observations
# ------------------------------------------------------------------ #
def test_observation_is_ten_zeros_without_a_flower(make_area, make_agent):
    area = make_area([])
    agent = make_agent(area)
    agent.update_nearest_flower()

    obs = agent.collect_observations()

    assert obs.shape == (config.OBSERVATION_SIZE,)
    assert obs.dtype == np.float32
    assert not obs.any()


def test_observation_layout(make_area, make_agent):
    area = make_area([(0.0, 0.0, 1.0)])
    agent = make_agent(area)
    agent.update_nearest_flower()

    obs = agent.collect_observations()

    flower = area.flowers[0]
    beak_to_flower = flower.center_position - agent.beak_tip_position
    direction = beak_to_flower / np.linalg.norm(beak_to_flower)

    assert obs.shape == (10,)
    assert np.allclose(obs[:4], [0.0, 0.0, 0.0, 1.0], atol=1e-6)
    assert np.allclose(obs[4:7], direction, atol=1e-6)
    assert obs[7] == pytest.approx(-direction[1], abs=1e-6)
    assert obs[8] == pytest.approx(0.0, abs=1e-6)
    assert obs[9] == pytest.approx(np.linalg.norm(beak_to_flower) / config.AREA_DIAMETER, abs=1e-6)


def test_observation_rotation_is_relative_to_the_area(make_area, make_agent):
    area = make_area([(0.0, 0.0, 1.0)])
    area.node.local_rotation = geo.quat_from_euler(0.0, 90.0, 0.0)
    agent = make_agent(area)
    agent.body.rotation = geo.quat_from_euler(0.0, 90.0, 0.0)
    agent.update_nearest_flower()

    obs = agent.collect_observations()

    assert np.allclose(np.abs(obs[:4]), [0.0, 0.0, 0.0, 1.0], atol=1e-6)


# ------------------------------------------------------------------ #
# Actions
# ------------------------------------------------------------------ #
def test_action_applies_world_space_force(make_area, make_agent):
    agent = make_agent(make_area([]), move_force=2.0)

    agent.on_action_received([1.0, -0.5, 0.25, 0.0, 0.0])
    agent.body.integrate(1.0)

    assert np.allclose(agent.body.velocity, [2.0, -1.0, 0.5])


def test_pitch_and_yaw_are_smoothed(make_area, make_agent):
    agent = make_agent(make_area([]))

    agent.on_action_received([0.0, 0.0, 0.0, 1.0, -1.0])

    step = config.SMOOTHING_RATE * config.FIXED_DELTA_TIME
    assert agent.smooth_pitch_change == pytest.approx(step)
    assert agent.smooth_yaw_change == pytest.approx(-step)
    pitch, yaw, roll = geo.quat_to_euler(agent.body.rotation)
    assert pitch == pytest.approx(step * config.FIXED_DELTA_TIME * 100.0)
    assert yaw == pytest.approx(360.0 - step * config.FIXED_DELTA_TIME * 100.0)


@pytest.mark.parametrize("direction", [1.0, -1.0])
def test_pitch_is_clamped(make_area, make_agent, direction):
    agent = make_agent(make_area([]))

    for _ in range(500):
        agent.on_action_received([0.0, 0.0, 0.0, direction, 0.0])

    pitch, _, _ = geo.quat_to_euler(agent.body.rotation)
    pitch = pitch - 360.0 if pitch > 180.0 else pitch
    assert pitch == pytest.approx(direction * config.MAX_PITCH_ANGLE, abs=1e-6)


def test_yaw_is_not_clamped(make_area, make_agent):
    agent = make_agent(make_area([]))

    for _ in range(300):
        agent.on_action_received([0.0, 0.0, 0.0, 0.0, 1.0])

    # 25 ramp-up steps add 26 degrees, then 2 degrees per step
    _, yaw, _ = geo.quat_to_euler(agent.body.rotation)
    assert yaw == pytest.approx((26.0 + 275 * 2.0) % 360.0, abs=1e-6)


def test_action_must_have_five_values(make_area, make_agent):
    agent = make_agent(make_area([]))

    with pytest.raises(ValueError):
        agent.on_action_received([0.0, 0.0, 1.0])


def test_frozen_agent_ignores_actions(make_area, make_agent):
    agent = make_agent(make_area([]), training_mode=False)
    agent.freeze_agent()
    rotation = agent.body.rotation.copy()

    agent.on_action_received([1.0, 1.0, 1.0, 1.0, 1.0])
    agent.body.integrate(config.FIXED_DELTA_TIME)

    assert agent.frozen and agent.body.sleeping
    assert np.allclose(agent.body.velocity, 0.0)
    assert np.allclose(agent.body.rotation, rotation)

    agent.unfreeze_agent()
    assert not agent.frozen and not agent.body.sleeping


def test_freeze_is_rejected_in_training(make_area, make_agent):
    agent = make_agent(make_area([]), training_mode=True)

    with pytest.raises(TrainingModeError):
        agent.freeze_agent()
    with pytest.raises(TrainingModeError):
        agent.unfreeze_agent()


def test_initialize_disables_step_budget_outside_training(make_area, make_agent):
    assert make_agent(make_area([]), training_mode=False, max_step=100).max_step == 0
    assert make_agent(make_area([]), training_mode=True, max_step=100).max_step == 100


# ------------------------------------------------------------------ #
# Heuristic
# ------------------------------------------------------------------ #
def test_heuristic_combines_and_normalises_movement(make_area, make_agent):
    agent = make_agent(make_area([]))

    action = agent.heuristic(ManualInput(forward=1, right=1, pitch=-1, yaw=1))

    assert action.shape == (config.ACTION_SIZE,)
    assert np.allclose(action[:3], [math.sqrt(0.5), 0.0, math.sqrt(0.5)], atol=1e-6)
    assert action[3] == -1.0 and action[4] == 1.0


def test_heuristic_uses_the_bird_axes(make_area, make_agent):
    agent = make_agent(make_area([]))
    agent.body.rotation = geo.quat_from_euler(0.0, 90.0, 0.0)

    action = agent.heuristic(ManualInput(forward=1))

    # Facing +x after a quarter turn
    assert np.allclose(action[:3], [1.0, 0.0, 0.0], atol=1e-6)


def test_heuristic_without_input_is_all_zero(make_area, make_agent):
    agent = make_agent(make_area([]))

    assert not agent.heuristic(ManualInput()).any()


def test_manual_input_from_keys_prefers_first_key_of_a_pair():
    controls = ManualInput.from_keys({"w": True, "s": True, "a": True, "q": True, "left": True})

    assert controls == ManualInput(forward=1, right=-1, up=-1, pitch=0, yaw=-1)


# ------------------------------------------------------------------ #
# Safe placement
# ------------------------------------------------------------------ #
def test_placement_accepts_first_draw_without_obstacles(make_area, make_agent):
    area = make_area([(0.0, 1.0, 3.0)])
    agent = make_agent(area)

    placement = agent.move_to_safe_random_position(in_front_of_flower=False)

    assert placement.safe
    assert placement.attempts == 1
    height = placement.position[1] - area.position[1]
    radius = np.hypot(placement.position[0], placement.position[2])
    assert config.SPAWN_HEIGHT_MIN <= height <= config.SPAWN_HEIGHT_MAX
    assert config.SPAWN_RADIUS_MIN <= radius <= config.SPAWN_RADIUS_MAX
    assert np.allclose(agent.body.position, placement.position)


def test_placement_in_front_of_flower_faces_the_flower(make_area, make_agent):
    area = make_area([(0.0, 1.0, 3.0)])
    agent = make_agent(area)

    placement = agent.move_to_safe_random_position(in_front_of_flower=True)

    flower = area.flowers[0]
    offset = placement.position - flower.position
    assert placement.attempts == 1
    assert config.FRONT_DISTANCE_MIN <= np.linalg.norm(offset) <= config.FRONT_DISTANCE_MAX
    assert np.allclose(geo.normalized(offset), flower.up_vector, atol=1e-9)
    to_center = geo.normalized(flower.center_position - placement.position)
    assert np.allclose(agent.body.forward, to_center, atol=1e-6)


def _packed_world():
    world = PhysicsWorld()
    world.add(SphereCollider(SceneNode("boulder"), radius=1000.0))
    return world


def test_placement_reports_exhaustion_and_keeps_last_candidate(make_area, make_agent, caplog):
    agent = make_agent(make_area([(0.0, 1.0, 3.0)]), world=_packed_world())

    with caplog.at_level(logging.ERROR, logger="hummingbird.agent"):
        placement = agent.move_to_safe_random_position(in_front_of_flower=False)

    assert not placement.safe
    assert placement.attempts == config.PLACEMENT_ATTEMPTS
    assert np.allclose(agent.body.position, placement.position)
    assert "spawn point" in caplog.text


def test_placement_exhaustion_raises_in_strict_mode(make_area, make_agent):
    agent = make_agent(make_area([(0.0, 1.0, 3.0)]), world=_packed_world(), strict=True)

    with pytest.raises(SafePlacementError) as excinfo:
        agent.move_to_safe_random_position(in_front_of_flower=True)
    assert excinfo.value.attempts == config.PLACEMENT_ATTEMPTS


# ------------------------------------------------------------------ #
# Feeding and rewards
# ------------------------------------------------------------------ #
def _facing_flower(make_area, make_agent, **settings):
    # Flower opening towards -z, bird looking along +z straight into it
    area = make_area([(0.0, 1.0, 1.0), (0.0, 1.0, 4.0)], rotations=[geo.quat_from_euler(-90.0, 0.0, 0.0)] * 2)
    agent = make_agent(area, **settings)
    _beak_at(agent, area.flowers[0].center_position)
    agent.update_nearest_flower()
    return area, agent


def test_feeding_drinks_and_rewards_alignment(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent)

    received = agent.on_trigger_stay(area.flowers[0].nectar_collider)

    assert received == pytest.approx(config.FEED_AMOUNT)
    assert agent.nectar_obtained == pytest.approx(config.FEED_AMOUNT)
    assert area.flowers[0].nectar_amount == pytest.approx(1.0 - config.FEED_AMOUNT)
    assert agent.drain_reward() == pytest.approx(config.FEED_REWARD + config.FEED_ALIGNMENT_BONUS)


def test_feeding_bonus_drops_when_not_facing_the_flower(make_area, make_agent):
    area = make_area([(0.0, 1.0, 1.0)])
    agent = make_agent(area)
    _beak_at(agent, area.flowers[0].center_position)

    agent.on_trigger_enter(area.flowers[0].nectar_collider)

    # Flower faces up, bird faces +z: no alignment bonus
    assert agent.drain_reward() == pytest.approx(config.FEED_REWARD)


def test_feeding_requires_beak_tip_contact(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent)
    collider = area.flowers[0].nectar_collider
    _beak_at(agent, collider.center + np.array([0.0, collider.radius + 0.01, 0.0]))

    assert agent.on_trigger_stay(collider) == 0.0
    assert area.flowers[0].nectar_amount == 1.0
    assert agent.drain_reward() == 0.0


def test_feeding_ignores_colliders_without_nectar_tag(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent)

    assert agent.on_trigger_stay(area.flowers[0].flower_collider) == 0.0
    assert agent.nectar_obtained == 0.0


def test_feeding_outside_training_gives_no_reward(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent, training_mode=False)

    agent.on_trigger_stay(area.flowers[0].nectar_collider)

    assert agent.nectar_obtained == pytest.approx(config.FEED_AMOUNT)
    assert agent.get_cumulative_reward() == 0.0


def test_frozen_agent_does_not_drink(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent, training_mode=False)
    agent.freeze_agent()

    for _ in range(10):
        assert agent.on_trigger_stay(area.flowers[0].nectar_collider) == 0.0

    assert area.flowers[0].nectar_amount == 1.0
    assert agent.nectar_obtained == 0.0

    agent.unfreeze_agent()
    assert agent.on_trigger_enter(area.flowers[0].nectar_collider) == pytest.approx(config.FEED_AMOUNT)


def test_emptying_a_flower_switches_nearest(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent)
    area.flowers[0].feed(0.995)

    received = agent.on_trigger_stay(area.flowers[0].nectar_collider)

    assert received == pytest.approx(0.005)
    assert area.flowers[0].is_depleted
    assert agent.nearest_flower is area.flowers[1]


def test_unregistered_nectar_collider_is_skipped(make_area, make_agent, caplog):
    area, agent = _facing_flower(make_area, make_agent)
    stray = Flower.create("stray", position=area.flowers[0].position, rotation=area.flowers[0].node.local_rotation)

    with caplog.at_level(logging.ERROR, logger="hummingbird.agent"):
        assert agent.on_trigger_stay(stray.nectar_collider) == 0.0
    assert "belongs to no flower" in caplog.text
    assert stray.nectar_amount == 1.0


def test_unregistered_nectar_collider_raises_in_strict_mode(make_area, make_agent):
    area, agent = _facing_flower(make_area, make_agent, strict=True)
    stray = Flower.create("stray", position=area.flowers[0].position, rotation=area.flowers[0].node.local_rotation)

    with pytest.raises(FlowerNotFoundError):
        agent.on_trigger_stay(stray.nectar_collider)


def test_boundary_collision_costs_half_a_point_per_callback(make_area, make_agent):
    agent = make_agent(make_area([]))
    wall = SphereCollider(SceneNode("wall", tag=config.BOUNDARY_TAG), radius=1.0)

    agent.on_collision_enter(wall)
    assert agent.drain_reward() == pytest.approx(-0.5)

    agent.on_collision_enter(wall)
    agent.on_collision_enter(wall)
    assert agent.drain_reward() == pytest.approx(-1.0)
    assert agent.get_cumulative_reward() == pytest.approx(-1.5)


def test_other_collisions_and_manual_mode_are_free(make_area, make_agent):
    rock = SphereCollider(SceneNode("rock"), radius=1.0)
    wall = SphereCollider(SceneNode("wall", tag=config.BOUNDARY_TAG), radius=1.0)

    trained = make_agent(make_area([]))
    trained.on_collision_enter(rock)
    manual = make_agent(make_area([]), training_mode=False)
    manual.on_collision_enter(wall)

    assert trained.get_cumulative_reward() == 0.0
    assert manual.get_cumulative_reward() == 0.0


# ------------------------------------------------------------------ #
# Episodes
# ------------------------------------------------------------------ #
def test_episode_begin_resets_state(make_area, make_agent):
    area = make_area([(0.0, 1.0, 3.0), (3.0, 1.0, 0.0)])
    agent = make_agent(area)
    area.flowers[0].feed(1.0)
    agent.nectar_obtained = 0.4
    agent.smooth_pitch_change = 0.7
    agent.smooth_yaw_change = -0.3
    agent.body.velocity = np.array([1.0, 2.0, 3.0])
    agent.add_reward(1.0)

    agent.begin_episode()

    assert all(f.nectar_amount == 1.0 for f in area.flowers)
    assert agent.nectar_obtained == 0.0
    assert agent.smooth_pitch_change == 0.0 and agent.smooth_yaw_change == 0.0
    assert np.allclose(agent.body.velocity, 0.0)
    assert agent.get_cumulative_reward() == 0.0
    assert agent.step_count == 0
    assert agent.nearest_flower is not None


def test_manual_episode_keeps_flowers_and_spawns_at_a_flower(make_area, make_agent):
    area = make_area([(0.0, 1.0, 3.0)])
    agent = make_agent(area, training_mode=False)
    area.flowers[0].feed(0.5)

    agent.begin_episode()

    assert area.flowers[0].nectar_amount == pytest.approx(0.5)
    distance = np.linalg.norm(agent.body.position - area.flowers[0].position)
    assert config.FRONT_DISTANCE_MIN <= distance <= config.FRONT_DISTANCE_MAX


def test_step_budget(make_area, make_agent):
    agent = make_agent(make_area([]), max_step=3)

    assert [agent.increment_step() for _ in range(3)] == [False, False, True]


def test_frozen_agent_ignores_collisions(make_area, make_agent):
    agent = make_agent(make_area([]), training_mode=False)
    agent.settings.training_mode = True
    agent.frozen = True
    wall = SphereCollider(SceneNode("wall", tag=config.BOUNDARY_TAG), radius=1.0)

    agent.on_collision_enter(wall)

    assert agent.get_cumulative_reward() == 0.0
