# Headless driver: runs a scene and writes one .npz per output frame
import os
import argparse

import numpy as np
import warp as wp
import torch

from sim_wrapper import Sim_Wrapper

wp.init() #initialize warp

sim = None

#callback to run one simulation step
def simulation_step():
    sim.step()

def write_frame(output_dir, k):
    path = os.path.join(output_dir, f"frame_{k:06d}.npz")
    np.savez(
        path,
        positions=sim.get_positions(),
        velocities=sim.get_velocities(),
        colors=sim.get_colors(),
    )
    return path

def simulation_init(scene_file=None, device="cuda:0"):
    global sim
    print("Initialized Sim")
    if scene_file:
        print(f"Loading scene from: {scene_file}")
        sim = Sim_Wrapper(scene_file=scene_file, device=device)
    else:
        sim = Sim_Wrapper(device=device)

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Position based fluids simulation")
    parser.add_argument("--scene", help="Path to the scene file")
    parser.add_argument("--output", help="Directory for per-frame .npz output")
    parser.add_argument("--num_steps", help="Number of outputs to simulate", type=int, default=100)
    parser.add_argument("--device", help="Device to use", type=str, default="cpu")
    parser.add_argument("--verify_cuda", help="Check every kernel launch for CUDA errors", action="store_true")
    args = parser.parse_args()

    print("CUDA version: ", torch.version.cuda)
    print("CUDA available: ", torch.cuda.is_available())

    if args.device not in ("cpu", "cuda"):
        parser.error(f"Unknown device: {args.device}")
    wp.config.verify_cuda = args.verify_cuda

    sim_device_wp = wp.device_from_torch(args.device)
    wp.set_device(sim_device_wp)

    # Convert device format: "cuda" -> "cuda:0", "cpu" -> "cpu"
    device_str = args.device if args.device == "cpu" else f"{args.device}:0"

    simulation_init(scene_file=args.scene, device=device_str)

    if args.output:
        os.makedirs(args.output, exist_ok=True)
        write_frame(args.output, 0)

    for k in range(args.num_steps):
        print("Step "+str(k))
        simulation_step()
        if args.output:
            write_frame(args.output, k + 1)

    sim.release()
