import sys
import os
import warnings
from enum import IntEnum

import numpy as np
import torch
import warp as wp

sys.path.append(os.path.dirname(os.path.realpath(__file__)))
from pbf_utils import Scene, sample_region
from pbf_utils.structs import *
from pbf_utils.given_kernels import *

from pbf_kernels import *
from pbf_kernels.sph_kernels import poly6_coefficient, spiky_grad_coefficient, poly6_host
from sdf_generator import SDFGenerator


class Stage(IntEnum):
    APPLY_FORCE_PREDICT = 0
    COMPUTE_GRID_HASH = 1
    SORT_GRID_HASH = 2
    RESET_CELL_START = 3
    BUILD_CELL_START = 4
    FIND_NEIGHBORS = 5
    COMPUTE_LAMBDA = 6
    COMPUTE_DELTA_P = 7
    UPDATE_PREDICTED_POSITION = 8
    UPDATE_VELOCITY = 9
    COMPUTE_VORTICITY = 10
    APPLY_VELOCITY_CORRECTION = 11
    FINALIZE_POSITION = 12


class VelocityCorrection(IntEnum):
    NONE = 0
    VORTICITY_CONFINEMENT = 1

    @classmethod
    def from_name(cls, name):
        return cls[name.upper()]


class Simulator_PBF:
    def __init__(self, scene=None, device="cuda:0"):
        self.initialize(scene if scene is not None else Scene(), device=device)

    def initialize(self, scene, device="cuda:0"):
        scene.validate()
        self.scene = scene
        self.device = device
        self.max_particles = scene.max_particle_count
        self.n_particles = 0

        h = float(scene.radius)
        self.model = ModelStruct()
        self.model.h = h
        self.model.poly6_coeff = poly6_coefficient(h)
        self.model.spiky_grad_coeff = spiky_grad_coefficient(h)
        self.model.rho0 = float(scene.rho_rest)
        self.model.epsilon = float(scene.epsilon)
        self.model.scorr_k = float(scene.scorr_k)
        self.model.scorr_n = float(scene.scorr_n)
        self.model.scorr_w_dq = poly6_host(scene.scorr_delta_q * h, h)
        self.model.viscosity = float(scene.viscosity)
        self.model.vorticity_epsilon = float(scene.vorticity_epsilon)
        self.model.surface_offset = float(scene.surface_offset)
        self.model.n_obstacles = 0

        bb_min = np.asarray(scene.bounding_box[0], dtype=np.float64)
        bb_max = np.asarray(scene.bounding_box[1], dtype=np.float64)
        dims = np.maximum(np.ceil((bb_max - bb_min) / h).astype(int), 1)
        self.model.min_bbox = wp.vec3(*bb_min.astype(np.float32))
        self.model.grid_dim_x = int(dims[0])
        self.model.grid_dim_y = int(dims[1])
        self.model.grid_dim_z = int(dims[2])
        self.n_cells = int(np.prod(dims))

        self.model.n_particles = 0
        self.model.max_neighbors = int(scene.max_neighbor_count)
        self.solver_iterations = int(scene.solver_iterations)

        self.state = StateStruct()
        self.allocate_fields(device)

        self.sdf = SDFGenerator(resolution=scene.resolution, device=device)
        self.field = self.sdf.allocate_field([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
        self.has_field = False
        self.obstacle_local_to_world = []
        self.set_obstacle_transforms([])

        self.set_forces(scene.forces)
        self.velocity_correction = VelocityCorrection.from_name(scene.velocity_correction)
        self.bind_stages()

        self.time = 0.0
        print(f"Simulator initialized: capacity {self.max_particles} particles, "
              f"hash grid {dims[0]} x {dims[1]} x {dims[2]} cells")

    def allocate_fields(self, device="cuda:0"):
        n = self.max_particles
        self.state.particle_x = wp.zeros(shape=n, dtype=wp.vec3, device=device)
        self.state.particle_v = wp.zeros(shape=n, dtype=wp.vec3, device=device)
        self.state.particle_x_pred = wp.zeros(shape=n, dtype=wp.vec3, device=device)
        self.state.particle_delta_p = wp.zeros(shape=n, dtype=wp.vec3, device=device)
        self.state.particle_lambda = wp.zeros(shape=n, dtype=float, device=device)
        self.state.particle_color = wp.zeros(shape=n, dtype=wp.vec4, device=device)

        self.state.particle_density = wp.zeros(shape=n, dtype=float, device=device)
        self.state.particle_v_out = wp.zeros(shape=n, dtype=wp.vec3, device=device)
        self.state.particle_omega = wp.zeros(shape=n, dtype=wp.vec3, device=device)

        # radix sort uses the second half as scratch space
        self.state.grid_keys = wp.zeros(shape=2 * n, dtype=wp.int32, device=device)
        self.state.grid_values = wp.zeros(shape=2 * n, dtype=wp.int32, device=device)
        self.state.cell_start = wp.full(shape=self.n_cells, value=EMPTY_CELL, dtype=wp.int32, device=device)

        self.state.neighbor_counts = wp.zeros(shape=n, dtype=wp.int32, device=device)
        self.state.neighbor_indices = wp.zeros(
            shape=n * self.model.max_neighbors, dtype=wp.int32, device=device
        )

    def bind_stages(self):
        """Resolve every pipeline stage to the kernel or host routine that runs it."""
        if self.velocity_correction == VelocityCorrection.VORTICITY_CONFINEMENT:
            velocity_correction = apply_vorticity_confinement
        else:
            velocity_correction = apply_xsph_viscosity

        self.stage_kernels = {
            Stage.APPLY_FORCE_PREDICT: apply_force_predict_position,
            Stage.COMPUTE_GRID_HASH: compute_grid_hash,
            Stage.RESET_CELL_START: set_value_to_int_array,
            Stage.BUILD_CELL_START: build_grid_cell_start,
            Stage.FIND_NEIGHBORS: find_neighbors,
            Stage.COMPUTE_LAMBDA: compute_lambda,
            Stage.COMPUTE_DELTA_P: compute_delta_p,
            Stage.UPDATE_PREDICTED_POSITION: update_predicted_position,
            Stage.UPDATE_VELOCITY: update_velocity,
            Stage.COMPUTE_VORTICITY: compute_vorticity,
            Stage.APPLY_VELOCITY_CORRECTION: velocity_correction,
            Stage.FINALIZE_POSITION: finalize_position,
        }
        self.host_stages = {
            Stage.SORT_GRID_HASH: self._sort_grid_hash,
        }
        missing = [stage for stage in Stage if stage not in self.stage_kernels and stage not in self.host_stages]
        if missing:
            raise RuntimeError(f"Unbound pipeline stages: {missing}")

    def _launch(self, stage, inputs, dim=None):
        if stage in self.host_stages:
            self.host_stages[stage](*inputs)
            return
        wp.launch(
            kernel=self.stage_kernels[stage],
            dim=self.n_particles if dim is None else dim,
            inputs=inputs,
            device=self.device,
        )

    def _sort_grid_hash(self):
        wp.utils.radix_sort_pairs(self.state.grid_keys, self.state.grid_values, self.n_particles)

    def _check_alive(self):
        if self.state is None:
            raise RuntimeError("Simulator has been released")

    # ---------------------------------------------------------------- inputs

    def set_forces(self, forces):
        """
        Replace the list of external accelerations. Accepts a list, a numpy
        array or a float32 torch tensor of shape (m, 3); m may change between steps.
        """
        self._check_alive()
        if isinstance(forces, torch.Tensor):
            if forces.numel() == 0:
                forces = np.zeros((0, 3), dtype=np.float32)
            else:
                forces = forces.detach().to(torch.float32)
                if forces.ndim == 1 and forces.shape[0] == 3:
                    forces = forces.reshape(1, 3)
                self.forces = torch2warp_vec3(forces, dvc=self.device)
                return
        forces = np.asarray(forces if forces is not None else [], dtype=np.float32)
        if forces.size == 0:
            forces = np.zeros((1, 3), dtype=np.float32)
        if forces.ndim == 1 and forces.shape[0] == 3:
            forces = forces[None, :]
        if forces.ndim != 2 or forces.shape[1] != 3:
            raise ValueError(f"forces must be shape (m, 3), got {forces.shape}")
        self.forces = wp.array(forces, dtype=wp.vec3, device=self.device)

    def set_sdf_field(self, field):
        """Use an existing FieldStruct for every obstacle instance."""
        self._check_alive()
        self.field = field
        self.has_field = True

    def generate_sdf(self, vertices, indices):
        self._check_alive()
        self.set_sdf_field(self.sdf.generate(vertices, indices))
        return self.field

    def set_obstacle_transforms(self, local_to_world):
        """
        Replace all obstacle instances with the given 4x4 local-to-world
        matrices. The inverses are computed here, on the host.
        """
        self._check_alive()
        mats = np.asarray(local_to_world, dtype=np.float64)
        if mats.size == 0:
            mats = np.zeros((0, 4, 4))
        if mats.ndim == 2:
            mats = mats[None]
        if mats.ndim != 3 or mats.shape[1:] != (4, 4):
            raise ValueError(f"obstacle transforms must be shape (m, 4, 4), got {mats.shape}")
        if mats.shape[0] > 0 and not self.has_field:
            raise ValueError("Obstacles need a signed distance field: call generate_sdf() or set_sdf_field() first")

        self.obstacle_local_to_world = [m for m in mats]
        n_obstacles = mats.shape[0]
        if n_obstacles == 0:
            # kernels never read these when n_obstacles is 0
            mats = np.eye(4)[None]
        inverses = np.linalg.inv(mats)
        self.state.local_to_world = wp.array(mats.astype(np.float32), dtype=wp.mat44, device=self.device)
        self.state.world_to_local = wp.array(inverses.astype(np.float32), dtype=wp.mat44, device=self.device)
        self.model.n_obstacles = n_obstacles

    def add_obstacle(self, local_to_world):
        self.set_obstacle_transforms(self.obstacle_local_to_world + [np.asarray(local_to_world, dtype=np.float64)])

    # ---------------------------------------------------------------- particles

    def inject_particles(self, positions, velocities=None, colors=None):
        """
        Append a batch of particles after the active ones.

        Args:
            positions: np.ndarray of shape (m, 3)
            velocities: np.ndarray of shape (m, 3), zero if omitted
            colors: np.ndarray of shape (m, 4) or (m, 3), opaque black if omitted

        Returns:
            True if the batch was added. A batch that does not fit in the
            remaining capacity is rejected as a whole with a RuntimeWarning.
        """
        self._check_alive()
        positions = np.asarray(positions, dtype=np.float32)
        if len(positions.shape) != 2 or positions.shape[1] != 3:
            raise ValueError(f"positions must be shape (m, 3), got {positions.shape}")
        m = positions.shape[0]

        if velocities is None:
            velocities = np.zeros((m, 3), dtype=np.float32)
        velocities = np.asarray(velocities, dtype=np.float32)
        if velocities.shape != (m, 3):
            raise ValueError(f"velocities must be shape {(m, 3)}, got {velocities.shape}")

        if colors is None:
            colors = np.tile(np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32), (m, 1))
        colors = np.asarray(colors, dtype=np.float32)
        if colors.ndim == 2 and colors.shape[1] == 3:
            colors = np.concatenate([colors, np.ones((m, 1), dtype=np.float32)], axis=1)
        if colors.shape != (m, 4):
            raise ValueError(f"colors must be shape {(m, 4)}, got {colors.shape}")

        if self.n_particles + m > self.max_particles:
            warnings.warn(
                f"Particle buffer overflow: cannot add {m} particles to {self.n_particles} "
                f"with capacity {self.max_particles}",
                RuntimeWarning,
            )
            return False
        if m == 0:
            return True

        wp.launch(
            kernel=write_particles,
            dim=m,
            inputs=[
                self.state,
                self.n_particles,
                wp.array(positions, dtype=wp.vec3, device=self.device),
                wp.array(velocities, dtype=wp.vec3, device=self.device),
                wp.array(colors, dtype=wp.vec4, device=self.device),
            ],
            device=self.device,
        )
        self.n_particles += m
        self.model.n_particles = self.n_particles
        return True

    def spawn_initial_particles(self):
        """
        Fill the scene's spawn regions with particle_count particles,
        particle i going to region i % len(regions).
        """
        scene = self.scene
        count = scene.particle_count
        if count > self.max_particles:
            warnings.warn(
                f"Particle buffer overflow: {count} particles requested, capacity is {self.max_particles}",
                RuntimeWarning,
            )
            return False
        if count == 0:
            return True

        positions = np.zeros((count, 3), dtype=np.float32)
        colors = np.zeros((count, 4), dtype=np.float32)
        n_regions = len(scene.spawn_regions)
        for r, region in enumerate(scene.spawn_regions):
            idx = np.arange(r, count, n_regions)
            positions[idx] = sample_region(scene.sampling_type, len(idx), region.min, region.max,
                                           seed=scene.seed + r)
            colors[idx] = list(region.color[:3]) + [1.0]

        accepted = self.inject_particles(positions, None, colors)
        print("Total particles: ", self.n_particles)
        return accepted

    # ---------------------------------------------------------------- pipeline

    def predict_positions(self, dt):
        self._launch(Stage.APPLY_FORCE_PREDICT, [self.state, self.model, self.forces, dt])

    def build_spatial_hash(self):
        self._launch(Stage.COMPUTE_GRID_HASH, [self.state, self.model])
        self._launch(Stage.SORT_GRID_HASH, [])
        self._launch(Stage.RESET_CELL_START, [self.state.cell_start, EMPTY_CELL], dim=self.n_cells)
        self._launch(Stage.BUILD_CELL_START, [self.state, self.model])

    def find_neighbors(self):
        self._launch(Stage.FIND_NEIGHBORS, [self.state, self.model])

    def compute_lambda(self):
        self._launch(Stage.COMPUTE_LAMBDA, [self.state, self.model])

    def compute_delta_p(self):
        self._launch(Stage.COMPUTE_DELTA_P, [self.state, self.model, self.field])

    def update_predicted_positions(self):
        self._launch(Stage.UPDATE_PREDICTED_POSITION, [self.state, self.model])

    def solve_constraints(self):
        for _ in range(self.solver_iterations):
            self.compute_lambda()
            self.compute_delta_p()
            self.update_predicted_positions()

    def integrate(self, dt):
        self._launch(Stage.UPDATE_VELOCITY, [self.state, self.model, dt])
        if self.velocity_correction == VelocityCorrection.VORTICITY_CONFINEMENT:
            self._launch(Stage.COMPUTE_VORTICITY, [self.state, self.model])
        self._launch(Stage.APPLY_VELOCITY_CORRECTION, [self.state, self.model, dt])
        self._launch(Stage.FINALIZE_POSITION, [self.state, self.model])

    def step(self, dt, forces=None, obstacle_transforms=None):
        """
        Advance the simulation by dt.

        Args:
            dt: Time step size, must be positive
            forces: optional replacement for the external accelerations
            obstacle_transforms: optional replacement for the obstacle local-to-world matrices
        """
        self._check_alive()
        if not dt > 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        if forces is not None:
            self.set_forces(forces)
        if obstacle_transforms is not None:
            self.set_obstacle_transforms(obstacle_transforms)

        if self.n_particles > 0:
            dt = float(dt)
            self.predict_positions(dt)
            self.build_spatial_hash()
            self.find_neighbors()
            self.solve_constraints()
            self.integrate(dt)

        self.time = self.time + dt

    def release(self):
        """Drop every device array. The simulator cannot step afterwards."""
        self.state = None
        self.model = None
        self.field = None
        self.forces = None
        self.sdf = None
        self.obstacle_local_to_world = []
        self.n_particles = 0

    # ---------------------------------------------------------------- outputs

    def get_positions(self):
        self._check_alive()
        return self.state.particle_x.numpy()[: self.n_particles]

    def get_velocities(self):
        self._check_alive()
        return self.state.particle_v.numpy()[: self.n_particles]

    def get_colors(self):
        self._check_alive()
        return self.state.particle_color.numpy()[: self.n_particles]

    def get_lambdas(self):
        self._check_alive()
        return self.state.particle_lambda.numpy()[: self.n_particles]

    def get_densities(self):
        self._check_alive()
        return self.state.particle_density.numpy()[: self.n_particles]

    def get_sorted_hash_table(self):
        """(cell hashes, particle indices) of the active particles in sorted order."""
        self._check_alive()
        n = self.n_particles
        return self.state.grid_keys.numpy()[:n], self.state.grid_values.numpy()[:n]

    def get_cell_start(self):
        self._check_alive()
        return self.state.cell_start.numpy()

    def get_neighbors(self):
        """List of neighbor index arrays, one per active particle."""
        self._check_alive()
        counts = self.state.neighbor_counts.numpy()[: self.n_particles]
        indices = self.state.neighbor_indices.numpy().reshape(self.max_particles, self.model.max_neighbors)
        return [indices[i, : counts[i]] for i in range(self.n_particles)]

    def export_particle_x_to_torch(self):
        self._check_alive()
        return wp.to_torch(self.state.particle_x)[: self.n_particles]

    def export_particle_v_to_torch(self):
        self._check_alive()
        return wp.to_torch(self.state.particle_v)[: self.n_particles]


def initialize(scene=None, device="cuda:0"):
    """Create a simulator for the scene and spawn its initial particles."""
    sim = Simulator_PBF(scene, device=device)
    sim.spawn_initial_particles()
    return sim


def step(sim, dt, forces=None, obstacle_transforms=None):
    sim.step(dt, forces, obstacle_transforms)
    return sim


def release(sim):
    sim.release()
