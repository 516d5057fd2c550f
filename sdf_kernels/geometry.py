import warp as wp
from pbf_utils.structs import *

# larger than any distance inside a field
MAX_DISTANCE = wp.constant(1.0e30)

# three skewed ray directions for the inside/outside vote
RAY_A = wp.constant(wp.vec3(0.8017837, 0.5345225, 0.2672612))
RAY_B = wp.constant(wp.vec3(-0.2672612, 0.8017837, 0.5345225))
RAY_C = wp.constant(wp.vec3(0.5345225, -0.2672612, 0.8017837))

@wp.func
def voxel_index(res: int, x: int, y: int, z: int):
    return (x * res + y) * res + z

@wp.func
def voxel_position(field: FieldStruct, x: int, y: int, z: int):
    return field.min_bb + wp.cw_mul(wp.vec3(wp.float32(x), wp.float32(y), wp.float32(z)), field.cell_size)

@wp.func
def closest_point_on_triangle(p: wp.vec3, v0: wp.vec3, v1: wp.vec3, v2: wp.vec3,
                              v10: wp.vec3, v21: wp.vec3, v02: wp.vec3):
    """Closest point to p on triangle (v0, v1, v2), found by Voronoi region tests on the edges."""
    ab = v10
    ac = -v02
    ap = p - v0
    d1 = wp.dot(ab, ap)
    d2 = wp.dot(ac, ap)
    if d1 <= 0.0 and d2 <= 0.0:
        return v0

    bp = p - v1
    d3 = wp.dot(ab, bp)
    d4 = wp.dot(ac, bp)
    if d3 >= 0.0 and d4 <= d3:
        return v1

    vc = d1 * d4 - d3 * d2
    if vc <= 0.0 and d1 >= 0.0 and d3 <= 0.0:
        return v0 + ab * (d1 / (d1 - d3))

    cp = p - v2
    d5 = wp.dot(ab, cp)
    d6 = wp.dot(ac, cp)
    if d6 >= 0.0 and d5 <= d6:
        return v2

    vb = d5 * d2 - d1 * d6
    if vb <= 0.0 and d2 >= 0.0 and d6 <= 0.0:
        return v0 + ac * (d2 / (d2 - d6))

    va = d3 * d6 - d5 * d4
    if va <= 0.0 and (d4 - d3) >= 0.0 and (d5 - d6) >= 0.0:
        return v1 + v21 * ((d4 - d3) / ((d4 - d3) + (d5 - d6)))

    denom = 1.0 / (va + vb + vc)
    return v0 + ab * (vb * denom) + ac * (vc * denom)

@wp.func
def ray_hits_triangle(origin: wp.vec3, direction: wp.vec3, v0: wp.vec3, v10: wp.vec3, v02: wp.vec3):
    # Moller-Trumbore, 1 if the ray hits the triangle in front of the origin
    e1 = v10
    e2 = -v02
    pvec = wp.cross(direction, e2)
    det = wp.dot(e1, pvec)
    if wp.abs(det) < 1.0e-12:
        return 0
    inv_det = 1.0 / det
    tvec = origin - v0
    u = wp.dot(tvec, pvec) * inv_det
    if u < 0.0 or u > 1.0:
        return 0
    qvec = wp.cross(tvec, e1)
    v = wp.dot(direction, qvec) * inv_det
    if v < 0.0 or u + v > 1.0:
        return 0
    if wp.dot(e2, qvec) * inv_det > 0.0:
        return 1
    return 0
