import warp as wp
from pbf_utils.structs import *
from pbf_kernels.sph_kernels import spiky_grad

@wp.kernel
def compute_vorticity(
    state: StateStruct, model: ModelStruct
):
    """
    Curl of the velocity field at each particle.

    PURPOSE:
    omega_i = sum_j (v_j - v_i) x grad_pj W_spiky(p_i - p_j), weighted by the
    particle volume 1 / rho0. Used by the vorticity confinement correction,
    which needs the curl of every neighbor, so it is computed in its own pass.

    INPUT VARIABLES (from state):
    - particle_x_pred: vec3 - Solved positions
    - particle_v: vec3 - Velocities from update_velocity
    - neighbor_counts, neighbor_indices: int - Neighbor table

    OUTPUT VARIABLES (modified in state):
    - particle_omega[i]: vec3 - Vorticity
    """
    i = wp.tid()
    x_i = state.particle_x_pred[i]
    v_i = state.particle_v[i]
    base = i * model.max_neighbors

    omega = wp.vec3(0.0, 0.0, 0.0)
    for k in range(state.neighbor_counts[i]):
        j = state.neighbor_indices[base + k]
        # gradient with respect to p_j
        grad = spiky_grad(state.particle_x_pred[j] - x_i, model.h, model.spiky_grad_coeff)
        omega += wp.cross(state.particle_v[j] - v_i, grad)

    state.particle_omega[i] = omega / model.rho0
