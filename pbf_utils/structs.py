import warp as wp

# cell_start value of a cell that holds no particle
EMPTY_CELL = wp.constant(-1)

@wp.struct
class ModelStruct:
    # smoothing kernel
    h: float
    poly6_coeff: float
    spiky_grad_coeff: float

    # density constraint
    rho0: float
    epsilon: float
    scorr_k: float
    scorr_n: float
    scorr_w_dq: float

    # velocity correction
    viscosity: float
    vorticity_epsilon: float

    # collision
    surface_offset: float
    n_obstacles: int

    # spatial hash
    min_bbox: wp.vec3
    grid_dim_x: int
    grid_dim_y: int
    grid_dim_z: int

    n_particles: int
    max_neighbors: int

@wp.struct
class StateStruct:
    ###### essential #####
    # particle
    particle_x: wp.array(dtype=wp.vec3)
    particle_v: wp.array(dtype=wp.vec3)
    particle_x_pred: wp.array(dtype=wp.vec3)
    particle_delta_p: wp.array(dtype=wp.vec3)
    particle_lambda: wp.array(dtype=float)
    particle_color: wp.array(dtype=wp.vec4)

    # working buffers
    particle_density: wp.array(dtype=float)
    particle_v_out: wp.array(dtype=wp.vec3)
    particle_omega: wp.array(dtype=wp.vec3)

    # spatial hash, keys/values are twice the capacity for the radix sort
    grid_keys: wp.array(dtype=wp.int32)
    grid_values: wp.array(dtype=wp.int32)
    cell_start: wp.array(dtype=wp.int32)

    # neighbors, flattened as i * max_neighbors + k
    neighbor_counts: wp.array(dtype=wp.int32)
    neighbor_indices: wp.array(dtype=wp.int32)

    # obstacle instances
    world_to_local: wp.array(dtype=wp.mat44)
    local_to_world: wp.array(dtype=wp.mat44)

@wp.struct
class FieldStruct:
    # voxel (x, y, z) is stored at (x * resolution + y) * resolution + z
    distance: wp.array(dtype=float)
    normal: wp.array(dtype=wp.vec3)
    inside: wp.array(dtype=wp.int32)

    resolution: int
    min_bb: wp.vec3
    max_bb: wp.vec3
    cell_size: wp.vec3

@wp.struct
class MeshStruct:
    v0: wp.array(dtype=wp.vec3)
    v1: wp.array(dtype=wp.vec3)
    v2: wp.array(dtype=wp.vec3)
    v10: wp.array(dtype=wp.vec3)
    v21: wp.array(dtype=wp.vec3)
    v02: wp.array(dtype=wp.vec3)
    normal: wp.array(dtype=wp.vec3)
    n_triangles: int
