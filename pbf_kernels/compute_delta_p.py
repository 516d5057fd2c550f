import warp as wp
from pbf_utils.structs import *
from pbf_kernels.sph_kernels import spiky_grad, tensile_correction
from sdf_kernels.sample_field import collision_correction

@wp.kernel
def compute_delta_p(
    state: StateStruct, model: ModelStruct, field: FieldStruct
):
    """
    Position correction of one Jacobi sweep, density constraint plus obstacle collision.

    PURPOSE:
    The density correction is

        delta_p_i = 1/rho0 * sum_j (lambda_i + lambda_j + s_corr) grad W_spiky(p_i - p_j)

    where the artificial pressure s_corr = -k (W(r) / W(delta_q h))^n keeps
    particles from clumping at the free surface. Every obstacle instance then
    contributes a push along its SDF normal when the particle is closer than
    surface_offset to (or inside) the obstacle. Corrections of several
    obstacles add up.

    INPUT VARIABLES (from state):
    - particle_x_pred, particle_lambda: Predicted positions and multipliers
    - neighbor_counts, neighbor_indices: int - Neighbor table
    - world_to_local[m], local_to_world[m]: mat44 - Obstacle instance transforms

    INPUT VARIABLES (from field):
    - The signed distance field shared by every obstacle instance

    OUTPUT VARIABLES (modified in state):
    - particle_delta_p[i]: vec3 - Correction applied by update_predicted_position
    """
    i = wp.tid()
    x_i = state.particle_x_pred[i]
    lambda_i = state.particle_lambda[i]
    base = i * model.max_neighbors

    delta = wp.vec3(0.0, 0.0, 0.0)
    for k in range(state.neighbor_counts[i]):
        j = state.neighbor_indices[base + k]
        r = x_i - state.particle_x_pred[j]
        s_corr = tensile_correction(wp.length(r), model.h, model.poly6_coeff, model.scorr_w_dq,
                                    model.scorr_k, model.scorr_n)
        delta += (lambda_i + state.particle_lambda[j] + s_corr) * spiky_grad(r, model.h, model.spiky_grad_coeff)
    delta = delta / model.rho0

    for m in range(model.n_obstacles):
        delta += collision_correction(field, state.world_to_local[m], state.local_to_world[m],
                                      x_i, model.surface_offset)

    state.particle_delta_p[i] = delta
