import warp as wp
from pbf_utils.structs import *

@wp.kernel
def update_velocity(
    state: StateStruct, model: ModelStruct, dt: float
):
    """Velocity implied by the solved displacement, v = (x_pred - x) / dt."""
    p = wp.tid()
    state.particle_v[p] = (state.particle_x_pred[p] - state.particle_x[p]) / dt
