import math

import warp as wp


def poly6_coefficient(h):
    return 315.0 / (64.0 * math.pi * h ** 9)


def spiky_grad_coefficient(h):
    return -45.0 / (math.pi * h ** 6)


def poly6_host(r, h):
    """Host-side W_poly6, used to precompute W(delta_q * h) for the tensile correction."""
    if r >= h:
        return 0.0
    x = h * h - r * r
    return poly6_coefficient(h) * x * x * x


@wp.func
def poly6(r: float, h: float, coeff: float):
    if r >= h:
        return 0.0
    x = h * h - r * r
    return coeff * x * x * x


@wp.func
def spiky_grad(r: wp.vec3, h: float, coeff: float):
    # gradient w.r.t. p_i of W_spiky(p_i - p_j), pointing from p_i towards p_j
    dist = wp.length(r)
    if dist <= 0.0 or dist >= h:
        return wp.vec3(0.0, 0.0, 0.0)
    x = h - dist
    return coeff * x * x * (r / dist)


@wp.func
def tensile_correction(r: float, h: float, poly6_coeff: float, w_dq: float, k: float, n: float):
    """Artificial pressure s_corr = -k (W(r) / W(delta_q h))^n."""
    if w_dq <= 0.0 or k == 0.0:
        return 0.0
    x = poly6(r, h, poly6_coeff) / w_dq
    return -k * wp.pow(x, n)
