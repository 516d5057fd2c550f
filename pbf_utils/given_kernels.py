import warp as wp
import torch
from pbf_utils.structs import *

@wp.kernel
def set_value_to_int_array(target_array: wp.array(dtype=wp.int32), value: wp.int32):
    tid = wp.tid()
    target_array[tid] = value

@wp.kernel
def write_particles(
    state: StateStruct,
    start: int,
    positions: wp.array(dtype=wp.vec3),
    velocities: wp.array(dtype=wp.vec3),
    colors: wp.array(dtype=wp.vec4),
):
    """
    Append a batch of particles at slot `start`. The predicted position starts
    equal to the position so the spatial hash is valid before the first step.
    """
    tid = wp.tid()
    p = start + tid
    state.particle_x[p] = positions[tid]
    state.particle_x_pred[p] = positions[tid]
    state.particle_v[p] = velocities[tid]
    state.particle_v_out[p] = velocities[tid]
    state.particle_color[p] = colors[tid]
    state.particle_delta_p[p] = wp.vec3(0.0, 0.0, 0.0)
    state.particle_omega[p] = wp.vec3(0.0, 0.0, 0.0)
    state.particle_lambda[p] = 0.0
    state.particle_density[p] = 0.0

def torch2warp_vec3(t, dvc="cuda:0"):
    if t.dtype != torch.float32:
        raise ValueError(
            "Error converting Torch tensor to Warp array. Torch tensor must be float32 type"
        )
    if t.ndim != 2 or t.shape[1] != 3:
        raise ValueError(f"Expected a tensor of shape (n, 3), got {tuple(t.shape)}")
    a = wp.from_torch(t.contiguous(), dtype=wp.vec3)
    if str(a.device) != str(wp.get_device(dvc)):
        a = a.to(dvc)
    return a
