"""
Scene data structure for managing simulation parameters, particle injection events, and obstacles.
"""
import json
import numpy as np
from typing import List, Dict, Optional

from pbf_utils.sampling import SAMPLERS

VELOCITY_CORRECTIONS = ("none", "vorticity_confinement")


class SpawnRegion:
    """Axis-aligned box filled with particles at initialization."""
    def __init__(self, min: List[float], max: List[float],
                 color: Optional[List[float]] = None):
        self.min = list(min)
        self.max = list(max)
        self.color = list(color) if color is not None else [0.0, 0.0, 1.0]

    def to_dict(self) -> Dict:
        return {"min": self.min, "max": self.max, "color": self.color}


class InjectionEvent:
    """Represents a cube of particles injected at a specific frame."""
    def __init__(self, frame: int, center: List[float], count: int,
                 color: Optional[List[float]] = None):
        self.frame = frame
        self.center = list(center)
        self.count = count
        self.color = list(color) if color is not None else [0.0, 0.0, 0.0]


class ObstacleEvent:
    """
    An obstacle instance that appears at a specific frame. It moves
    kinematically: translation advances by velocity * elapsed time.
    """
    def __init__(self, frame: int, translation: List[float],
                 rotation_axis: Optional[List[float]] = None, rotation_angle: float = 0.0,
                 scale: float = 1.0, velocity: Optional[List[float]] = None):
        self.frame = frame
        self.translation = list(translation)
        self.rotation_axis = list(rotation_axis) if rotation_axis is not None else [0.0, 1.0, 0.0]
        self.rotation_angle = rotation_angle
        self.scale = scale
        self.velocity = list(velocity) if velocity is not None else [0.0, 0.0, 0.0]

    def translation_at(self, elapsed: float) -> List[float]:
        return (np.asarray(self.translation) + elapsed * np.asarray(self.velocity)).tolist()


class Scene:
    """Scene data structure containing simulation parameters and events."""

    def __init__(self, dt: float = 1.0 / 60.0,
                 particle_count: int = 20000,
                 max_particle_count: int = 50000,
                 max_neighbor_count: int = 128,
                 solver_iterations: int = 5,
                 rho_rest: float = 6378.0,
                 radius: float = 0.1,
                 epsilon: float = 600.0,
                 viscosity: float = 5e-5,
                 bounding_box: Optional[List[List[float]]] = None,
                 spawn_regions: Optional[List[SpawnRegion]] = None,
                 inject_particles_count: int = 3000,
                 resolution: int = 32,
                 forces: Optional[List[List[float]]] = None,
                 scorr_k: float = 0.1,
                 scorr_delta_q: float = 0.2,
                 scorr_n: float = 4.0,
                 surface_offset: float = 0.01,
                 vorticity_epsilon: float = 0.01,
                 velocity_correction: str = "vorticity_confinement",
                 sampling_type: str = "random",
                 seed: int = 30,
                 frames_per_output: int = 1,
                 obstacle_mesh: Optional[Dict] = None):
        """
        Initialize a scene.

        Args:
            dt: Time step size
            particle_count: Particles spawned at initialization, spread round-robin over spawn_regions
            max_particle_count: Fixed particle capacity
            max_neighbor_count: Neighbor list cap per particle, extra neighbors are dropped
            solver_iterations: Jacobi sweeps of the density constraint per step
            rho_rest: Rest density
            radius: Smoothing kernel radius h, also the hash cell size
            epsilon: Constraint force mixing relaxation for lambda
            viscosity: XSPH viscosity coefficient
            bounding_box: [min, max] corners of the hashed domain
            spawn_regions: Boxes filled at initialization
            inject_particles_count: Default particle count of an injected cube
            resolution: SDF voxels per axis
            forces: Acceleration vectors summed and applied to every particle
            scorr_k, scorr_delta_q, scorr_n: Tensile instability correction
            surface_offset: Distance from an obstacle surface below which particles are pushed out
            vorticity_epsilon: Strength of vorticity confinement
            velocity_correction: "none" or "vorticity_confinement"
            sampling_type: "random", "grid", "jittered_grid" or "blue_noise"
            seed: Random seed of the spawn sampler
            frames_per_output: Number of simulation steps to run between outputs
            obstacle_mesh: Mesh description for obstacles, see pbf_utils.meshes.mesh_from_dict
        """
        self.dt = dt
        self.particle_count = particle_count
        self.max_particle_count = max_particle_count
        self.max_neighbor_count = max_neighbor_count
        self.solver_iterations = solver_iterations
        self.rho_rest = rho_rest
        self.radius = radius
        self.epsilon = epsilon
        self.viscosity = viscosity
        self.bounding_box = bounding_box if bounding_box is not None else [[-1.5, 0.0, -1.5], [1.5, 10.0, 1.5]]
        self.spawn_regions = spawn_regions if spawn_regions is not None else [
            SpawnRegion([-1.0, 1.0, -1.0], [1.0, 3.0, 1.0], [0.0, 0.0, 1.0])
        ]
        self.inject_particles_count = inject_particles_count
        self.resolution = resolution
        self.forces = forces if forces is not None else [[0.0, -9.81, 0.0]]

        self.scorr_k = scorr_k
        self.scorr_delta_q = scorr_delta_q
        self.scorr_n = scorr_n
        self.surface_offset = surface_offset
        self.vorticity_epsilon = vorticity_epsilon
        self.velocity_correction = velocity_correction

        self.sampling_type = sampling_type
        self.seed = seed
        self.frames_per_output = frames_per_output
        self.obstacle_mesh = obstacle_mesh

        self.injection_events: List[InjectionEvent] = []
        self.obstacles: List[ObstacleEvent] = []

    def validate(self):
        """Raise ValueError on settings the simulator cannot run with."""
        if self.radius <= 0.0:
            raise ValueError(f"radius must be positive, got {self.radius}")
        if self.dt <= 0.0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        bb_min, bb_max = np.asarray(self.bounding_box[0]), np.asarray(self.bounding_box[1])
        if bb_min.shape != (3,) or bb_max.shape != (3,):
            raise ValueError("boundingBox must be [[x, y, z], [x, y, z]]")
        if np.any(bb_max <= bb_min):
            raise ValueError(f"Inverted bounding box: {self.bounding_box}")
        if self.max_particle_count < 1:
            raise ValueError(f"maxParticleCount must be at least 1, got {self.max_particle_count}")
        if self.max_neighbor_count < 1:
            raise ValueError(f"maxNeighborCount must be at least 1, got {self.max_neighbor_count}")
        if self.solver_iterations < 0:
            raise ValueError(f"solverIterations must be non-negative, got {self.solver_iterations}")
        if self.rho_rest <= 0.0:
            raise ValueError(f"rhoRest must be positive, got {self.rho_rest}")
        if self.epsilon <= 0.0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")
        if self.resolution < 2:
            raise ValueError(f"resolution must be at least 2, got {self.resolution}")
        if self.particle_count > 0 and not self.spawn_regions:
            raise ValueError("particleCount > 0 requires at least one spawn region")
        if self.sampling_type not in SAMPLERS:
            raise ValueError(f"Unknown sampling type: {self.sampling_type}")
        if self.velocity_correction not in VELOCITY_CORRECTIONS:
            raise ValueError(f"Unknown velocity correction: {self.velocity_correction}. "
                             f"Must be one of {VELOCITY_CORRECTIONS}")
        forces = np.asarray(self.forces, dtype=float)
        if forces.size and (forces.ndim != 2 or forces.shape[1] != 3):
            raise ValueError(f"forces must be a list of 3-vectors, got shape {forces.shape}")

    def add_injection_event(self, frame: int, center: List[float], count: Optional[int] = None,
                            color: Optional[List[float]] = None):
        """Add a particle cube injection at a specific frame."""
        count = count if count is not None else self.inject_particles_count
        self.injection_events.append(InjectionEvent(frame, center, count, color))
        self.injection_events.sort(key=lambda e: e.frame)

    def add_obstacle(self, frame: int, translation: List[float], rotation_axis: Optional[List[float]] = None,
                     rotation_angle: float = 0.0, scale: float = 1.0,
                     velocity: Optional[List[float]] = None):
        """Add an obstacle instance appearing at a specific frame."""
        self.obstacles.append(ObstacleEvent(frame, translation, rotation_axis, rotation_angle, scale, velocity))
        self.obstacles.sort(key=lambda e: e.frame)

    def get_injection_events_at_frame(self, frame: int) -> List[InjectionEvent]:
        """Get all injections scheduled for a specific frame."""
        return [event for event in self.injection_events if event.frame == frame]

    def get_obstacles_at_frame(self, frame: int) -> List[ObstacleEvent]:
        return [event for event in self.obstacles if event.frame == frame]

    def to_dict(self) -> Dict:
        """Convert scene to dictionary for JSON serialization."""
        return {
            "dt": self.dt,
            "particleCount": self.particle_count,
            "maxParticleCount": self.max_particle_count,
            "maxNeighborCount": self.max_neighbor_count,
            "solverIterations": self.solver_iterations,
            "rhoRest": self.rho_rest,
            "radius": self.radius,
            "epsilon": self.epsilon,
            "viscosity": self.viscosity,
            "boundingBox": self.bounding_box,
            "spawnRegions": [region.to_dict() for region in self.spawn_regions],
            "injectParticlesCount": self.inject_particles_count,
            "resolution": self.resolution,
            "forces": self.forces,
            "scorrK": self.scorr_k,
            "scorrDeltaQ": self.scorr_delta_q,
            "scorrN": self.scorr_n,
            "surfaceOffset": self.surface_offset,
            "vorticityEpsilon": self.vorticity_epsilon,
            "velocityCorrection": self.velocity_correction,
            "samplingType": self.sampling_type,
            "seed": self.seed,
            "framesPerOutput": self.frames_per_output,
            "obstacleMesh": self.obstacle_mesh,
            "injectionEvents": [
                {
                    "frame": e.frame,
                    "center": e.center,
                    "count": e.count,
                    "color": e.color
                }
                for e in self.injection_events
            ],
            "obstacles": [
                {
                    "frame": e.frame,
                    "translation": e.translation,
                    "rotationAxis": e.rotation_axis,
                    "rotationAngle": e.rotation_angle,
                    "scale": e.scale,
                    "velocity": e.velocity
                }
                for e in self.obstacles
            ]
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Scene':
        """Create scene from dictionary."""
        regions = None
        if "spawnRegions" in data:
            regions = [SpawnRegion(r["min"], r["max"], r.get("color")) for r in data["spawnRegions"]]
        scene = cls(
            dt=data.get("dt", 1.0 / 60.0),
            particle_count=data.get("particleCount", 20000),
            max_particle_count=data.get("maxParticleCount", 50000),
            max_neighbor_count=data.get("maxNeighborCount", 128),
            solver_iterations=data.get("solverIterations", 5),
            rho_rest=data.get("rhoRest", 6378.0),
            radius=data.get("radius", 0.1),
            epsilon=data.get("epsilon", 600.0),
            viscosity=data.get("viscosity", 5e-5),
            bounding_box=data.get("boundingBox", None),
            spawn_regions=regions,
            inject_particles_count=data.get("injectParticlesCount", 3000),
            resolution=data.get("resolution", 32),
            forces=data.get("forces", None),
            scorr_k=data.get("scorrK", 0.1),
            scorr_delta_q=data.get("scorrDeltaQ", 0.2),
            scorr_n=data.get("scorrN", 4.0),
            surface_offset=data.get("surfaceOffset", 0.01),
            vorticity_epsilon=data.get("vorticityEpsilon", 0.01),
            velocity_correction=data.get("velocityCorrection", "vorticity_confinement"),
            sampling_type=data.get("samplingType", "random"),
            seed=data.get("seed", 30),
            frames_per_output=data.get("framesPerOutput", 1),
            obstacle_mesh=data.get("obstacleMesh", None)
        )

        for event_data in data.get("injectionEvents", []):
            scene.add_injection_event(
                frame=event_data["frame"],
                center=event_data["center"],
                count=event_data.get("count", scene.inject_particles_count),
                color=event_data.get("color", None)
            )

        for obstacle_data in data.get("obstacles", []):
            scene.add_obstacle(
                frame=obstacle_data.get("frame", 0),
                translation=obstacle_data.get("translation", [0.0, 0.0, 0.0]),
                rotation_axis=obstacle_data.get("rotationAxis", None),
                rotation_angle=obstacle_data.get("rotationAngle", 0.0),
                scale=obstacle_data.get("scale", 1.0),
                velocity=obstacle_data.get("velocity", None)
            )

        return scene

    @classmethod
    def from_json(cls, filepath: str) -> 'Scene':
        """Load scene from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_json(self, filepath: str):
        """Save scene to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
