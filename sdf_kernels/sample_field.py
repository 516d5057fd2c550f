import warp as wp
from pbf_utils.structs import *
from sdf_kernels.geometry import voxel_index

@wp.func
def field_distance(field: FieldStruct, x: int, y: int, z: int):
    return field.distance[voxel_index(field.resolution, x, y, z)]

@wp.func
def field_normal(field: FieldStruct, x: int, y: int, z: int):
    return field.normal[voxel_index(field.resolution, x, y, z)]

@wp.func
def sample_field(field: FieldStruct, x: wp.vec3):
    """
    Trilinearly interpolated (distance, normal) at local point x.

    Points outside [min_bb, max_bb] are clamped onto the bounds and the clamp
    distance is added, so far queries return roughly the Euclidean distance to
    the field box with a normal pointing away from it.
    """
    lo = field.min_bb
    hi = field.max_bb
    clamped = wp.vec3(wp.clamp(x[0], lo[0], hi[0]),
                      wp.clamp(x[1], lo[1], hi[1]),
                      wp.clamp(x[2], lo[2], hi[2]))
    outside = wp.length(x - clamped)

    res = field.resolution
    top = wp.float32(res - 1)
    u = wp.cw_div(clamped - lo, field.cell_size)
    fx = wp.clamp(u[0], 0.0, top)
    fy = wp.clamp(u[1], 0.0, top)
    fz = wp.clamp(u[2], 0.0, top)
    x0 = wp.min(int(wp.floor(fx)), res - 2)
    y0 = wp.min(int(wp.floor(fy)), res - 2)
    z0 = wp.min(int(wp.floor(fz)), res - 2)
    tx = fx - wp.float32(x0)
    ty = fy - wp.float32(y0)
    tz = fz - wp.float32(z0)

    d00 = wp.lerp(field_distance(field, x0, y0, z0), field_distance(field, x0 + 1, y0, z0), tx)
    d10 = wp.lerp(field_distance(field, x0, y0 + 1, z0), field_distance(field, x0 + 1, y0 + 1, z0), tx)
    d01 = wp.lerp(field_distance(field, x0, y0, z0 + 1), field_distance(field, x0 + 1, y0, z0 + 1), tx)
    d11 = wp.lerp(field_distance(field, x0, y0 + 1, z0 + 1), field_distance(field, x0 + 1, y0 + 1, z0 + 1), tx)
    dist = wp.lerp(wp.lerp(d00, d10, ty), wp.lerp(d01, d11, ty), tz)

    n00 = wp.lerp(field_normal(field, x0, y0, z0), field_normal(field, x0 + 1, y0, z0), tx)
    n10 = wp.lerp(field_normal(field, x0, y0 + 1, z0), field_normal(field, x0 + 1, y0 + 1, z0), tx)
    n01 = wp.lerp(field_normal(field, x0, y0, z0 + 1), field_normal(field, x0 + 1, y0, z0 + 1), tx)
    n11 = wp.lerp(field_normal(field, x0, y0 + 1, z0 + 1), field_normal(field, x0 + 1, y0 + 1, z0 + 1), tx)
    n = wp.lerp(wp.lerp(n00, n10, ty), wp.lerp(n01, n11, ty), tz)

    n_len = wp.length(n)
    if n_len > 0.0:
        n = n / n_len
    if outside > 0.0:
        n = (x - clamped) / outside

    return dist + outside, n

@wp.func
def collision_correction(field: FieldStruct, world_to_local: wp.mat44, local_to_world: wp.mat44,
                         x: wp.vec3, surface_offset: float):
    """
    World-space displacement that moves x out to surface_offset from one obstacle instance.
    surface_offset is a world distance; obstacle transforms carry a uniform scale.
    """
    x_local = wp.transform_point(world_to_local, x)
    dist, n = sample_field(field, x_local)
    local_offset = surface_offset * wp.length(wp.transform_vector(world_to_local, wp.vec3(1.0, 0.0, 0.0)))
    correction = wp.vec3(0.0, 0.0, 0.0)
    if dist < local_offset:
        correction = wp.transform_vector(local_to_world, n * (local_offset - dist))
    return correction

@wp.kernel
def sample_field_points(
    field: FieldStruct,
    points: wp.array(dtype=wp.vec3),
    distances: wp.array(dtype=float),
    normals: wp.array(dtype=wp.vec3),
):
    tid = wp.tid()
    dist, n = sample_field(field, points[tid])
    distances[tid] = dist
    normals[tid] = n
