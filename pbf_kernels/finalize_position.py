import warp as wp
from pbf_utils.structs import *

@wp.kernel
def finalize_position(
    state: StateStruct, model: ModelStruct
):
    p = wp.tid()
    state.particle_x[p] = state.particle_x_pred[p]
    state.particle_v[p] = state.particle_v_out[p]
