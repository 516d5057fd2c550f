import warp as wp
from pbf_utils.structs import *
from pbf_kernels.sph_kernels import poly6, spiky_grad

@wp.func
def xsph_velocity(state: StateStruct, model: ModelStruct, i: int):
    # v_i + c * sum_j (v_j - v_i) W_poly6(|p_i - p_j|)
    x_i = state.particle_x_pred[i]
    v_i = state.particle_v[i]
    base = i * model.max_neighbors
    blend = wp.vec3(0.0, 0.0, 0.0)
    for k in range(state.neighbor_counts[i]):
        j = state.neighbor_indices[base + k]
        w = poly6(wp.length(x_i - state.particle_x_pred[j]), model.h, model.poly6_coeff)
        blend += (state.particle_v[j] - v_i) * w
    return v_i + model.viscosity * blend

@wp.kernel
def apply_xsph_viscosity(
    state: StateStruct, model: ModelStruct, dt: float
):
    """
    XSPH viscosity only. Writes to particle_v_out so neighbors keep reading
    the uncorrected velocities.
    """
    i = wp.tid()
    state.particle_v_out[i] = xsph_velocity(state, model, i)

@wp.kernel
def apply_vorticity_confinement(
    state: StateStruct, model: ModelStruct, dt: float
):
    """
    XSPH viscosity followed by vorticity confinement.

    PURPOSE:
    Numerical damping removes rotational energy from the flow. Confinement
    adds it back by pushing each particle towards higher vorticity magnitude:

        eta_i = sum_j |omega_j| grad W_spiky(p_i - p_j) / rho0
        N_i = eta_i / |eta_i|
        v_i += dt * vorticity_epsilon * (N_i x omega_i)

    INPUT VARIABLES (from state):
    - particle_v: vec3 - Velocities from update_velocity
    - particle_omega: vec3 - Vorticity from compute_vorticity
    - particle_x_pred: vec3 - Solved positions

    OUTPUT VARIABLES (modified in state):
    - particle_v_out[i]: vec3 - Corrected velocity, copied back by finalize_position
    """
    i = wp.tid()
    x_i = state.particle_x_pred[i]
    base = i * model.max_neighbors

    eta = wp.vec3(0.0, 0.0, 0.0)
    for k in range(state.neighbor_counts[i]):
        j = state.neighbor_indices[base + k]
        grad = spiky_grad(x_i - state.particle_x_pred[j], model.h, model.spiky_grad_coeff)
        eta += wp.length(state.particle_omega[j]) * grad
    eta = eta / model.rho0

    v = xsph_velocity(state, model, i)
    eta_len = wp.length(eta)
    if eta_len > 1.0e-9:
        N = eta / eta_len
        v = v + dt * model.vorticity_epsilon * wp.cross(N, state.particle_omega[i])

    state.particle_v_out[i] = v
