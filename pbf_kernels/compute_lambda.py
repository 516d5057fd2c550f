import warp as wp
from pbf_utils.structs import *
from pbf_kernels.sph_kernels import poly6, spiky_grad

@wp.kernel
def compute_lambda(
    state: StateStruct, model: ModelStruct
):
    """
    Solve the density constraint multiplier of each particle.

    PURPOSE:
    The density constraint of particle i is C_i = rho_i / rho0 - 1 with the SPH
    density estimate rho_i = W(0) + sum_j W_poly6(|p_i - p_j|). Its Lagrange
    multiplier is

        lambda_i = -C_i / (sum_k |grad_{p_k} C_i|^2 + epsilon)

    where grad_{p_j} C_i = -grad W_spiky(p_i - p_j) / rho0 for a neighbor j and
    grad_{p_i} C_i = sum_j grad W_spiky(p_i - p_j) / rho0. epsilon relaxes the
    constraint and keeps the denominator away from zero, so an isolated
    particle gets lambda = -C / epsilon.

    INPUT VARIABLES (from state):
    - particle_x_pred: vec3 - Predicted positions
    - neighbor_counts, neighbor_indices: int - Neighbor table

    INPUT VARIABLES (from model):
    - h, poly6_coeff, spiky_grad_coeff: float - Kernel support and normalization
    - rho0: float - Rest density
    - epsilon: float - Relaxation

    OUTPUT VARIABLES (modified in state):
    - particle_density[i]: float - rho_i
    - particle_lambda[i]: float - lambda_i
    """
    i = wp.tid()
    x_i = state.particle_x_pred[i]
    base = i * model.max_neighbors

    density = float(0.0)
    density += poly6(0.0, model.h, model.poly6_coeff)
    grad_i = wp.vec3(0.0, 0.0, 0.0)
    sum_grad_sqr = float(0.0)

    for k in range(state.neighbor_counts[i]):
        j = state.neighbor_indices[base + k]
        r = x_i - state.particle_x_pred[j]
        density += poly6(wp.length(r), model.h, model.poly6_coeff)
        grad_j = spiky_grad(r, model.h, model.spiky_grad_coeff) / model.rho0
        sum_grad_sqr += wp.dot(grad_j, grad_j)
        grad_i += grad_j

    sum_grad_sqr += wp.dot(grad_i, grad_i)
    constraint = density / model.rho0 - 1.0

    state.particle_density[i] = density
    state.particle_lambda[i] = -constraint / (sum_grad_sqr + model.epsilon)
