import numpy as np
import pytest

from pbf_utils import Scene, box_mesh, local_to_world_matrix
from sdf_generator import SDFGenerator
from simulator import Simulator_PBF


@pytest.fixture
def cube_generator(device):
    generator = SDFGenerator(resolution=16, device=device)
    vertices, indices = box_mesh([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
    generator.generate(vertices, indices)
    return generator


def test_preprocess_drops_degenerate_triangles(device):
    vertices, indices = box_mesh([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
    vertices = np.concatenate([vertices, [[0.2, 0.2, 0.2]]])
    indices = np.concatenate([indices, [[0, 0, 1], [8, 8, 8]]])
    mesh, min_bb, max_bb = SDFGenerator(device=device).preprocess_triangles(vertices, indices)
    assert mesh.n_triangles == 12
    assert np.allclose(min_bb, [-0.5, -0.5, -0.5])
    assert np.allclose(max_bb, [0.5, 0.5, 0.5])

    normals = mesh.normal.numpy()
    assert np.allclose(np.linalg.norm(normals, axis=1), 1.0, atol=1e-6)
    assert np.allclose(mesh.v10.numpy() + mesh.v21.numpy() + mesh.v02.numpy(), 0.0, atol=1e-6)


def test_mesh_without_valid_triangles(device):
    vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
    with pytest.raises(ValueError):
        SDFGenerator(device=device).generate(vertices, np.array([[0, 1, 2]]))


def test_malformed_mesh_arrays(device):
    generator = SDFGenerator(device=device)
    with pytest.raises(ValueError):
        generator.generate(np.zeros((4, 2)), np.array([[0, 1, 2]]))
    with pytest.raises(ValueError):
        generator.generate(np.zeros((3, 3)), np.array([[0, 1, 5]]))
    with pytest.raises(ValueError):
        SDFGenerator(resolution=1, device=device)


def test_cube_center_is_inside(cube_generator):
    distance, _, inside = cube_generator.sample([[0.0, 0.0, 0.0]])
    assert inside[0]
    assert distance[0] < 0.0
    assert distance[0] == pytest.approx(-0.5, abs=0.05)


def test_cube_interior_distance_and_normal(cube_generator):
    distance, normal, inside = cube_generator.sample([[0.3, 0.2, -0.1], [0.4, 0.0, 0.0]])
    assert inside.all()
    assert distance[0] == pytest.approx(-0.2, abs=0.05)
    assert distance[1] == pytest.approx(-0.1, abs=0.05)
    assert normal[1][0] > 0.9


@pytest.mark.parametrize("point, expected", [
    ([3.0, 0.0, 0.0], 2.5),
    ([0.0, 1.5, 0.0], 1.0),
    ([0.0, 0.0, -0.75], 0.25),
])
def test_cube_far_outside_is_euclidean(cube_generator, point, expected):
    distance, normal, inside = cube_generator.sample([point])
    assert not inside[0]
    assert distance[0] == pytest.approx(expected, abs=0.02)
    direction = np.asarray(point) / np.linalg.norm(point)
    assert np.dot(normal[0], direction) > 0.99


def test_voxel_classification(cube_generator):
    data = SDFGenerator.export_field(cube_generator.field)
    assert data["distance"].shape == (16, 16, 16)
    interior = data["inside"][1:15, 1:15, 1:15]
    assert interior.mean() > 0.99
    # signed consistently with the inside flag
    assert np.all(data["distance"][data["inside"] == 1] <= 0.0)
    assert np.all(data["distance"][data["inside"] == 0] >= 0.0)
    assert np.all(np.isfinite(data["distance"]))


def test_transformed_obstacle_pushes_particle_to_surface(device):
    scene = Scene(particle_count=0, max_particle_count=16, solver_iterations=1,
                  surface_offset=0.0, radius=0.1, forces=[[0.0, 0.0, 0.0]],
                  bounding_box=[[-3.0, -3.0, -3.0], [3.0, 3.0, 3.0]], resolution=16)
    sim = Simulator_PBF(scene, device=device)
    sim.generate_sdf(*box_mesh([0.0, 0.0, 0.0], [1.0, 1.0, 1.0]))
    transform = local_to_world_matrix([0.0, 1.0, 0.0], [0.0, 1.0, 0.0], 45.0, 2.0)
    sim.add_obstacle(transform)

    sim.inject_particles(np.array([[0.0, 1.3, 0.0]], dtype=np.float32))
    sim.step(1.0 / 60.0)

    x = sim.get_positions()[0]
    # top face of the scaled box sits at y = 1 + 2 * 0.5
    assert x[1] == pytest.approx(2.0, abs=0.03)
    local = np.linalg.inv(transform) @ np.append(x, 1.0)
    distance, _, _ = sim.sdf.sample([local[:3]])
    assert distance[0] >= -0.01


def test_surface_offset_is_a_world_distance_on_scaled_obstacles(device):
    scene = Scene(particle_count=0, max_particle_count=16, solver_iterations=1,
                  surface_offset=0.05, radius=0.1, forces=[[0.0, 0.0, 0.0]],
                  bounding_box=[[-3.0, -3.0, -3.0], [3.0, 3.0, 3.0]], resolution=16)
    sim = Simulator_PBF(scene, device=device)
    sim.generate_sdf(*box_mesh([0.0, 0.0, 0.0], [1.0, 1.0, 1.0]))
    sim.add_obstacle(local_to_world_matrix([0.0, 0.0, 0.0], [0.0, 1.0, 0.0], 0.0, 2.0))

    # top face of the scaled box sits at y = 1
    sim.inject_particles(np.array([[0.0, 1.01, 0.0], [0.0, 1.5, 0.0]], dtype=np.float32))
    sim.step(1.0 / 60.0)

    x = sim.get_positions()
    assert x[0, 1] == pytest.approx(1.0 + scene.surface_offset, abs=1e-3)
    assert np.allclose(x[1], [0.0, 1.5, 0.0], atol=1e-6)


def test_imported_field_keeps_generator_resolution(device):
    generator = SDFGenerator(resolution=12, device=device)
    res = 5
    distance = np.ones((res, res, res), dtype=np.float32)
    normal = np.zeros((res, res, res, 3), dtype=np.float32)
    field = generator.from_arrays(distance, normal, np.zeros((res, res, res)), [0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
    assert field.resolution == res
    assert generator.resolution == 12

    generated = generator.generate(*box_mesh([0.0, 0.0, 0.0], [1.0, 1.0, 1.0]))
    assert generated.resolution == 12
    assert SDFGenerator.export_field(generated)["distance"].shape == (12, 12, 12)
