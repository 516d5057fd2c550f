import warp as wp
from pbf_utils.structs import *

@wp.kernel
def apply_force_predict_position(
    state: StateStruct, model: ModelStruct, forces: wp.array(dtype=wp.vec3), dt: float
):
    """
    Apply external accelerations and predict positions (symplectic Euler).

    PURPOSE:
    Every entry of `forces` is an acceleration (gravity, wind, a user field)
    applied uniformly to all particles. The velocity is advanced first and the
    predicted position uses the updated velocity.

    INPUT VARIABLES (from state):
    - particle_x[p]: vec3 - Position at the start of the step
    - particle_v[p]: vec3 - Velocity at the start of the step

    INPUT VARIABLES (function parameter):
    - forces[f]: vec3 - External accelerations, summed
    - dt: float - Time step size

    OUTPUT VARIABLES (modified in state):
    - particle_v[p]: vec3 - v + dt * sum(forces)
    - particle_x_pred[p]: vec3 - x + dt * v
    """
    p = wp.tid()
    acc = wp.vec3(0.0, 0.0, 0.0)
    for f in range(forces.shape[0]):
        acc += forces[f]

    v = state.particle_v[p] + acc * dt
    state.particle_v[p] = v
    state.particle_x_pred[p] = state.particle_x[p] + v * dt
