import warp as wp
from pbf_utils.structs import *

@wp.kernel
def update_predicted_position(
    state: StateStruct, model: ModelStruct
):
    p = wp.tid()
    state.particle_x_pred[p] = state.particle_x_pred[p] + state.particle_delta_p[p]
