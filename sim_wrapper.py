import warp as wp
import numpy as np
from simulator import initialize
from pbf_utils import Scene, fill_cube_with_particles, mesh_from_dict, local_to_world_matrix
wp.init()

class Sim_Wrapper:
    def __init__(self, scene=None, scene_file=None, device="cuda:0"):
        """
        Initialize simulation wrapper.

        Args:
            scene: Scene object to use (if provided)
            scene_file: Path to JSON scene file (if provided, scene is ignored)
            device: Device to use for simulation (default: "cuda:0")
        """
        self.device = device
        if scene_file:
            self.scene = Scene.from_json(scene_file)
        elif scene:
            self.scene = scene
        else:
            self.scene = Scene()

        # Spawns the initial particles of the scene
        self.solver = initialize(self.scene, device=device)

        # Obstacle instances that have appeared so far
        self.obstacles = []

        # Track current frame
        self.current_frame = 0

        # Frame 0 events happen before the first step
        self._process_events(0)

    def _process_events(self, frame):
        for event in self.scene.get_obstacles_at_frame(frame):
            self.add_obstacle(event)
        for event in self.scene.get_injection_events_at_frame(frame):
            self.add_particle_cube(event.center, event.count, event.color)

    def add_particle_cube(self, center, n_particles=None, color=None):
        """
        Inject a cube of particles around center.

        Args:
            center (array-like, shape (3,)): Center of the cube.
            n_particles (int): Number of particles, the scene's injectParticlesCount if omitted.
            color (array-like, shape (3,)): Particle color, black if omitted.

        Returns:
            True if the particles fit in the remaining capacity.
        """
        n_particles = n_particles if n_particles is not None else self.scene.inject_particles_count
        positions = fill_cube_with_particles(center, n_particles)
        rgb = color if color is not None else [0.0, 0.0, 0.0]
        colors = np.tile(np.array(list(rgb[:3]) + [1.0], dtype=np.float32), (positions.shape[0], 1))
        return self.solver.inject_particles(positions, None, colors)

    def add_obstacle(self, event):
        """Add an obstacle instance, generating the scene's SDF on first use."""
        if not self.solver.has_field:
            if self.scene.obstacle_mesh is None:
                raise ValueError("Scene has obstacles but no obstacleMesh")
            vertices, indices = mesh_from_dict(self.scene.obstacle_mesh)
            self.solver.generate_sdf(vertices, indices)
        self.obstacles.append(event)
        self.solver.set_obstacle_transforms(self.obstacle_transforms(self.current_frame))

    def obstacle_transforms(self, frame):
        """Local-to-world matrices of all obstacles at the given frame."""
        transforms = []
        for event in self.obstacles:
            elapsed = (frame - event.frame) * self.scene.dt
            transforms.append(local_to_world_matrix(event.translation_at(elapsed), event.rotation_axis,
                                                    event.rotation_angle, event.scale))
        return transforms

    def step(self):
        for i in range(self.scene.frames_per_output):
            # Frame 0 events were processed in __init__
            if self.current_frame > 0:
                self._process_events(self.current_frame)

            transforms = self.obstacle_transforms(self.current_frame) if self.obstacles else None
            self.solver.step(self.scene.dt, obstacle_transforms=transforms)

            # Increment frame counter
            self.current_frame += 1

    def get_positions(self):
        return self.solver.get_positions()

    def get_velocities(self):
        return self.solver.get_velocities()

    def get_colors(self):
        return self.solver.get_colors()

    def release(self):
        self.solver.release()
