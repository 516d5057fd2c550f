import numpy as np

from pbf_utils import Scene
from simulator import Simulator_PBF


def make_sim(device, max_neighbor_count=64):
    scene = Scene(
        particle_count=0,
        max_particle_count=512,
        max_neighbor_count=max_neighbor_count,
        radius=0.25,
        bounding_box=[[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]],
        forces=[[0.0, 0.0, 0.0]],
    )
    return Simulator_PBF(scene, device=device)


def test_grid_dimensions(device):
    sim = make_sim(device)
    assert (sim.model.grid_dim_x, sim.model.grid_dim_y, sim.model.grid_dim_z) == (4, 4, 4)
    assert sim.n_cells == 64


def test_cell_start_table(device):
    sim = make_sim(device)
    positions = np.array([
        [0.1, 0.1, 0.1],     # cell (0, 0, 0) -> 0
        [0.6, 0.1, 0.1],     # cell (2, 0, 0) -> 32
        [0.12, 0.05, 0.2],   # cell (0, 0, 0) -> 0
        [0.9, 0.9, 0.9],     # cell (3, 3, 3) -> 63
        [-5.0, 0.1, 20.0],   # clamped to (0, 0, 3) -> 3
    ], dtype=np.float32)
    assert sim.inject_particles(positions)
    sim.build_spatial_hash()

    keys, values = sim.get_sorted_hash_table()
    assert keys.tolist() == [0, 0, 3, 32, 63]
    assert set(values[:2].tolist()) == {0, 2}
    assert values[2:].tolist() == [4, 1, 3]

    cell_start = sim.get_cell_start()
    expected = np.full(64, -1)
    expected[0], expected[3], expected[32], expected[63] = 0, 2, 3, 4
    assert np.array_equal(cell_start, expected)

    # hashing never moves a particle
    assert np.allclose(sim.get_positions(), positions)


def test_cell_start_is_rebuilt(device):
    sim = make_sim(device)
    sim.inject_particles(np.array([[0.1, 0.1, 0.1]], dtype=np.float32))
    sim.build_spatial_hash()
    assert sim.get_cell_start()[0] == 0

    sim.state.particle_x_pred.assign(np.array([[0.9, 0.1, 0.1]] + [[0.0, 0.0, 0.0]] * 511, dtype=np.float32))
    sim.build_spatial_hash()
    cell_start = sim.get_cell_start()
    assert cell_start[0] == -1
    assert cell_start[3 * 16] == 0


def brute_force_neighbors(points, h):
    pts = points.astype(np.float64)
    d = np.linalg.norm(pts[:, None, :] - pts[None, :, :], axis=-1)
    np.fill_diagonal(d, np.inf)
    return d


def test_neighbors_match_brute_force(device):
    sim = make_sim(device, max_neighbor_count=256)
    rng = np.random.default_rng(3)
    points = rng.uniform(0.0, 1.0, size=(300, 3)).astype(np.float32)
    sim.inject_particles(points)
    sim.build_spatial_hash()
    sim.find_neighbors()

    h = sim.model.h
    d = brute_force_neighbors(points, h)
    for i, found in enumerate(sim.get_neighbors()):
        found = set(found.tolist())
        expected = set(np.nonzero(d[i] < h)[0].tolist())
        # pairs right at the support radius may round either way in float32
        borderline = set(np.nonzero(np.abs(d[i] - h) < 1e-5)[0].tolist())
        assert found - borderline == expected - borderline
        assert i not in found


def test_neighbors_are_truncated_at_cap(device):
    sim = make_sim(device, max_neighbor_count=4)
    rng = np.random.default_rng(5)
    points = (0.5 + rng.uniform(-0.02, 0.02, size=(20, 3))).astype(np.float32)
    sim.inject_particles(points)
    sim.build_spatial_hash()
    sim.find_neighbors()

    for i, found in enumerate(sim.get_neighbors()):
        assert len(found) == 4
        assert i not in found
        assert np.all(np.linalg.norm(points[found] - points[i], axis=1) < sim.model.h)


def test_out_of_box_particles_still_find_neighbors(device):
    sim = make_sim(device)
    points = np.array([[1.3, 0.5, 0.5], [1.35, 0.5, 0.5], [0.1, 0.1, 0.1]], dtype=np.float32)
    sim.inject_particles(points)
    sim.build_spatial_hash()
    sim.find_neighbors()
    neighbors = sim.get_neighbors()
    assert neighbors[0].tolist() == [1]
    assert neighbors[1].tolist() == [0]
    assert neighbors[2].tolist() == []
