import numpy as np
import pytest
import warp as wp

from simulator import Simulator_PBF, Stage
from pbf_kernels.sph_kernels import poly6_host, poly6_coefficient, tensile_correction


@wp.kernel
def eval_tensile_correction(
    r: wp.array(dtype=float),
    h: float,
    coeff: float,
    w_dq: float,
    k: float,
    n: float,
    out: wp.array(dtype=float),
):
    tid = wp.tid()
    out[tid] = tensile_correction(r[tid], h, coeff, w_dq, k, n)


def test_tensile_correction_matches_closed_form(device):
    h, k, n, delta_q = 0.1, 0.1, 4.0, 0.2
    w_dq = poly6_host(delta_q * h, h)
    r = np.array([0.0, 0.01, 0.02, 0.05, 0.09, 0.1, 0.2], dtype=np.float32)
    out = wp.zeros(len(r), dtype=float, device=device)
    wp.launch(eval_tensile_correction, dim=len(r),
              inputs=[wp.array(r, dtype=float, device=device), h, poly6_coefficient(h), w_dq, k, n, out],
              device=device)

    expected = [-k * (poly6_host(float(ri), h) / w_dq) ** n for ri in r]
    assert np.allclose(out.numpy(), expected, rtol=1e-4, atol=1e-9)
    # equals -k exactly at r = delta_q * h
    assert out.numpy()[2] == pytest.approx(-k, rel=1e-4)
    assert np.all(out.numpy()[5:] == 0.0)


def test_tensile_correction_disabled_with_zero_strength(device):
    out = wp.zeros(1, dtype=float, device=device)
    wp.launch(eval_tensile_correction, dim=1,
              inputs=[wp.array([0.01], dtype=float, device=device), 0.1, poly6_coefficient(0.1),
                      poly6_host(0.02, 0.1), 0.0, 4.0, out],
              device=device)
    assert out.numpy()[0] == 0.0


def build_neighbors(sim, positions, velocities):
    sim.inject_particles(positions, velocities)
    sim.build_spatial_hash()
    sim.find_neighbors()


def test_xsph_blends_neighbor_velocities(small_scene, device):
    small_scene.velocity_correction = "none"
    small_scene.viscosity = 1e-4
    sim = Simulator_PBF(small_scene, device=device)
    positions = np.array([[-0.025, 0.0, 0.0], [0.025, 0.0, 0.0]], dtype=np.float32)
    velocities = np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]], dtype=np.float32)
    build_neighbors(sim, positions, velocities)

    dt = 0.01
    sim._launch(Stage.APPLY_VELOCITY_CORRECTION, [sim.state, sim.model, dt])
    v_out = sim.state.particle_v_out.numpy()[:2]

    w = poly6_host(0.05, small_scene.radius)
    expected = velocities + small_scene.viscosity * (velocities[::-1] - velocities) * w
    assert np.allclose(v_out, expected, rtol=1e-4)
    # velocities relax towards each other, momentum is kept
    assert abs(v_out[0, 0]) < 1.0
    assert np.allclose(v_out.sum(axis=0), 0.0, atol=1e-5)
    # the uncorrected velocities are left for finalize_position to overwrite
    assert np.allclose(sim.get_velocities(), velocities)


def rotating_ring(n=12, radius=0.04, angular_speed=2.0):
    angles = np.arange(n) * 2.0 * np.pi / n
    positions = np.stack([radius * np.cos(angles), radius * np.sin(angles), np.zeros(n)], axis=1)
    velocities = angular_speed * np.stack([-positions[:, 1], positions[:, 0], np.zeros(n)], axis=1)
    return positions.astype(np.float32), velocities.astype(np.float32)


def test_vorticity_confinement_spins_up_rotating_ring(small_scene, device):
    small_scene.viscosity = 0.0
    small_scene.vorticity_epsilon = 0.5
    positions, velocities = rotating_ring()
    n = positions.shape[0]
    dt = 0.01

    small_scene.velocity_correction = "none"
    plain = Simulator_PBF(small_scene, device=device)
    build_neighbors(plain, positions, velocities)
    plain._launch(Stage.APPLY_VELOCITY_CORRECTION, [plain.state, plain.model, dt])
    v_plain = plain.state.particle_v_out.numpy()[:n]
    assert np.allclose(v_plain, velocities)

    small_scene.velocity_correction = "vorticity_confinement"
    confined = Simulator_PBF(small_scene, device=device)
    build_neighbors(confined, positions, velocities)
    confined._launch(Stage.COMPUTE_VORTICITY, [confined.state, confined.model])
    confined._launch(Stage.APPLY_VELOCITY_CORRECTION, [confined.state, confined.model, dt])
    v_confined = confined.state.particle_v_out.numpy()[:n]
    omega = confined.state.particle_omega.numpy()[:n]

    # counter-clockwise rotation about +z
    assert np.all(omega[:, 2] > 0.0)
    assert np.allclose(omega[:, :2], 0.0, atol=1e-6 * np.abs(omega[:, 2]).max())

    # |omega| is the same around the ring, so N points at the ring center
    inward = -positions / np.linalg.norm(positions, axis=1, keepdims=True)
    expected = dt * small_scene.vorticity_epsilon * np.cross(inward, omega)
    delta = v_confined - v_plain
    assert np.abs(delta).max() > 0.0
    assert np.allclose(delta, expected, rtol=1e-3, atol=1e-3 * np.abs(expected).max())

    tangent = velocities / np.linalg.norm(velocities, axis=1, keepdims=True)
    assert np.all(np.sum(delta * tangent, axis=1) > 0.0)
