import numpy as np
import pytest

from pbf_utils import Scene, SpawnRegion, sample_region, fill_cube_with_particles
from pbf_utils.meshes import local_to_world_matrix


def test_defaults():
    scene = Scene()
    scene.validate()
    assert scene.particle_count == 20000
    assert scene.max_particle_count == 50000
    assert scene.max_neighbor_count == 128
    assert scene.solver_iterations == 5
    assert scene.rho_rest == 6378.0
    assert scene.radius == 0.1
    assert scene.epsilon == 600.0
    assert scene.bounding_box == [[-1.5, 0.0, -1.5], [1.5, 10.0, 1.5]]
    assert len(scene.spawn_regions) == 1
    assert scene.spawn_regions[0].color == [0.0, 0.0, 1.0]


def test_dict_round_trip():
    scene = Scene(particle_count=10, radius=0.2,
                  spawn_regions=[SpawnRegion([0, 0, 0], [1, 1, 1], [1, 0, 0])],
                  obstacle_mesh={"type": "box", "center": [0, 0, 0], "size": [1, 1, 1]})
    scene.add_injection_event(5, [0.0, 1.0, 0.0], 100)
    scene.add_obstacle(0, [0.0, 0.5, 0.0], rotation_angle=30.0, velocity=[1.0, 0.0, 0.0])

    data = scene.to_dict()
    assert data["particleCount"] == 10
    assert data["radius"] == 0.2

    loaded = Scene.from_dict(data)
    assert loaded.to_dict() == data
    assert loaded.get_injection_events_at_frame(5)[0].count == 100
    assert loaded.get_injection_events_at_frame(4) == []
    assert loaded.get_obstacles_at_frame(0)[0].rotation_angle == 30.0


def test_json_round_trip(tmp_path):
    scene = Scene(particle_count=3, velocity_correction="none")
    path = tmp_path / "scene.json"
    scene.to_json(str(path))
    loaded = Scene.from_json(str(path))
    assert loaded.particle_count == 3
    assert loaded.velocity_correction == "none"


def test_injection_count_defaults_to_scene_setting():
    scene = Scene(inject_particles_count=42)
    scene.add_injection_event(1, [0.0, 0.0, 0.0])
    assert scene.injection_events[0].count == 42


@pytest.mark.parametrize("kwargs", [
    {"radius": 0.0},
    {"radius": -1.0},
    {"dt": 0.0},
    {"bounding_box": [[1.0, 0.0, 0.0], [0.0, 1.0, 1.0]]},
    {"max_neighbor_count": 0},
    {"solver_iterations": -1},
    {"resolution": 1},
    {"sampling_type": "hexagonal"},
    {"velocity_correction": "magic"},
    {"forces": [[0.0, 1.0]]},
    {"spawn_regions": []},
])
def test_validate_rejects_misconfiguration(kwargs):
    with pytest.raises(ValueError):
        Scene(**kwargs).validate()


def test_overfull_scene_is_still_valid():
    # capacity overflow is a runtime warning at spawn time, not a config error
    Scene(particle_count=100, max_particle_count=10).validate()


@pytest.mark.parametrize("sampling_type", ["random", "grid", "jittered_grid", "blue_noise"])
def test_samplers_fill_box_with_exact_count(sampling_type):
    box_min, box_max = [-1.0, 1.0, -1.0], [1.0, 3.0, 1.0]
    points = sample_region(sampling_type, 200, box_min, box_max, seed=1)
    assert points.shape == (200, 3)
    assert np.all(points >= np.array(box_min) - 1e-6)
    assert np.all(points <= np.array(box_max) + 1e-6)


def test_unknown_sampler():
    with pytest.raises(ValueError):
        sample_region("stratified", 10, [0, 0, 0], [1, 1, 1])


def test_fill_cube_with_particles():
    center = np.array([0.0, 4.0, 0.0])
    points = fill_cube_with_particles(center, 1000)
    assert points.shape == (1000, 3)
    assert np.all(np.abs(points - center) <= 0.25 + 1e-6)
    spacing = (0.125 / 1000) ** (1.0 / 3.0)
    assert np.isclose(points[1, 2] - points[0, 2], spacing, atol=1e-6)


def test_local_to_world_matrix():
    m = local_to_world_matrix([1.0, 2.0, 3.0], [0.0, 0.0, 1.0], 90.0, 2.0)
    p = m @ np.array([1.0, 0.0, 0.0, 1.0])
    assert np.allclose(p[:3], [1.0, 4.0, 3.0], atol=1e-9)
