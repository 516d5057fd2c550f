import warp as wp
from pbf_utils.structs import *
from sdf_kernels.geometry import MAX_DISTANCE, voxel_index, voxel_position, closest_point_on_triangle

@wp.kernel
def compute_distance(
    field: FieldStruct, mesh: MeshStruct
):
    """
    Signed distance and outward normal of every voxel.

    The unsigned distance is the minimum over all triangles of the distance to
    the closest point on the triangle; it is negated for voxels voxelize marked
    inside. The normal is the face normal of the nearest triangle, flipped if
    needed so it points from the surface towards the outside of the solid.
    Must run after voxelize.
    """
    x, y, z = wp.tid()
    idx = voxel_index(field.resolution, x, y, z)
    p = voxel_position(field, x, y, z)

    best = float(MAX_DISTANCE)
    best_normal = wp.vec3(0.0, 0.0, 0.0)
    best_offset = wp.vec3(0.0, 0.0, 0.0)
    for t in range(mesh.n_triangles):
        q = closest_point_on_triangle(p, mesh.v0[t], mesh.v1[t], mesh.v2[t],
                                      mesh.v10[t], mesh.v21[t], mesh.v02[t])
        d = wp.length(p - q)
        if d < best:
            best = d
            best_normal = mesh.normal[t]
            best_offset = p - q

    sign = 1.0
    if field.inside[idx] == 1:
        sign = -1.0

    # outside of the solid lies along +offset for outside voxels, -offset for inside ones
    n = best_normal
    if wp.dot(n, best_offset * sign) < 0.0:
        n = -n

    field.distance[idx] = sign * best
    field.normal[idx] = n
