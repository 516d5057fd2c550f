import warp as wp
from pbf_utils.structs import *
from sdf_kernels.geometry import MAX_DISTANCE, RAY_A, RAY_B, RAY_C, voxel_index, voxel_position, ray_hits_triangle

@wp.kernel
def voxelize(
    field: FieldStruct, mesh: MeshStruct
):
    """
    Reset every voxel and classify it as inside or outside the mesh.

    PURPOSE:
    A ray from the voxel crosses a closed surface an odd number of times iff
    the voxel is inside. Rays that graze an edge or a vertex can miscount, so
    three rays along skewed directions are cast and the majority decides.

    INPUT VARIABLES (from mesh):
    - v0, v10, v02: vec3 - Triangle corner and edges
    - n_triangles: int

    OUTPUT VARIABLES (modified in field):
    - distance[idx]: float - MAX_DISTANCE, refined by compute_distance
    - normal[idx]: vec3 - zero, refined by compute_distance
    - inside[idx]: int - 1 inside the mesh, 0 outside
    """
    x, y, z = wp.tid()
    idx = voxel_index(field.resolution, x, y, z)
    field.distance[idx] = MAX_DISTANCE
    field.normal[idx] = wp.vec3(0.0, 0.0, 0.0)

    p = voxel_position(field, x, y, z)
    hits_a = int(0)
    hits_b = int(0)
    hits_c = int(0)
    for t in range(mesh.n_triangles):
        hits_a += ray_hits_triangle(p, RAY_A, mesh.v0[t], mesh.v10[t], mesh.v02[t])
        hits_b += ray_hits_triangle(p, RAY_B, mesh.v0[t], mesh.v10[t], mesh.v02[t])
        hits_c += ray_hits_triangle(p, RAY_C, mesh.v0[t], mesh.v10[t], mesh.v02[t])

    votes = (hits_a % 2) + (hits_b % 2) + (hits_c % 2)
    if votes >= 2:
        field.inside[idx] = 1
    else:
        field.inside[idx] = 0
