from __future__ import annotations

import math

import numpy as np
from numba import njit

# vdW functional forms
LJ_6_12 = 0
LJ_4_8 = 1
PLP = 2

# polar roles (same values as centers.Role)
DONOR = 1
ACCEPTOR = 2


# ----------------------------------------------------------------------
# pair energies (callable from python too, used for annotations)

@njit(fastmath=True)
def vdw_pair(r2, ri, rj, ei, ej, func, rmax, ecut, slope_in, slope_out, width_in, width_out):
    rmin = ri + rj
    if r2 < 1e-12 or rmin <= 0.0:
        return 0.0
    r = math.sqrt(r2)
    if func == PLP:
        if r < rmin:
            dr = rmin - r
            if width_in > 0.0 and dr > width_in:
                dr = width_in
            e = slope_in * dr
        else:
            dr = r - rmin
            if dr > width_out:
                return 0.0
            e = slope_out * (1.0 - dr / width_out)
        return e if e < ecut else ecut

    if r > rmax * rmin:
        return 0.0
    eps = math.sqrt(ei * ej)
    x = rmin / r
    if func == LJ_4_8:
        x4 = x * x * x * x
        e = eps * (x4 * x4 - 2.0 * x4)
    else:
        x6 = x * x * x * x * x * x
        e = eps * (x6 * x6 - 2.0 * x6)
    return e if e < ecut else ecut


@njit(fastmath=True)
def _ramp(theta, tmin, width):
    if theta >= tmin:
        return 1.0
    if width <= 0.0 or theta <= tmin - width:
        return 0.0
    return (theta - (tmin - width)) / width


@njit(fastmath=True)
def _angle_deg(ax, ay, az, bx, by, bz, cx, cy, cz):
    # angle at b
    ux = ax - bx
    uy = ay - by
    uz = az - bz
    vx = cx - bx
    vy = cy - by
    vz = cz - bz
    nu = math.sqrt(ux*ux + uy*uy + uz*uz)
    nv = math.sqrt(vx*vx + vy*vy + vz*vz)
    if nu < 1e-12 or nv < 1e-12:
        return 0.0
    c = (ux*vx + uy*vy + uz*vz) / (nu * nv)
    if c > 1.0:
        c = 1.0
    elif c < -1.0:
        c = -1.0
    return math.degrees(math.acos(c))


@njit(fastmath=True)
def polar_pair(pd, ad, had, pa, aa, haa, r12, dr12, strength, angle_min, acc_angle_min, dangle):
    """Donor H at pd (heavy atom ad) against acceptor at pa (neighbour centre aa)."""
    dx = pd[0] - pa[0]
    dy = pd[1] - pa[1]
    dz = pd[2] - pa[2]
    r = math.sqrt(dx*dx + dy*dy + dz*dz)
    if r >= r12 + dr12:
        return 0.0
    f = 1.0
    if r > r12:
        f = 1.0 - (r - r12) / dr12
    if had:
        f *= _ramp(_angle_deg(ad[0], ad[1], ad[2], pd[0], pd[1], pd[2], pa[0], pa[1], pa[2]), angle_min, dangle)
    if haa and f > 0.0:
        f *= _ramp(_angle_deg(aa[0], aa[1], aa[2], pa[0], pa[1], pa[2], pd[0], pd[1], pd[2]), acc_angle_min, dangle)
    return strength * f


@njit(fastmath=True)
def desolvation_pair(r2, si, vi, sj, vj, inv_two_sigma2, cutoff2):
    if r2 > cutoff2:
        return 0.0
    return (si * vj + sj * vi) * math.exp(-r2 * inv_two_sigma2)


# ----------------------------------------------------------------------
# query kernels
#
# Every kernel sums, for each query centre q_ids[k], the pair energy with the
# partners items[start[row]:start[row + 1]] where row = q_rows[k]. Rows come
# from a grid (cell index, -1 = off grid), an interaction map or a single
# brute-force row. Pairs with a disabled centre or i == j contribute 0.

@njit(fastmath=True)
def vdw_query_sums(q_ids, q_rows, start, items, pos, en, radius, eps,
                   func, rmax, ecut, slope_in, slope_out, width_in, width_out):
    nq = q_ids.shape[0]
    out = np.zeros(nq)
    for k in range(nq):
        i = q_ids[k]
        row = q_rows[k]
        if row < 0 or en[i] == 0:
            continue
        xi = pos[i, 0]
        yi = pos[i, 1]
        zi = pos[i, 2]
        s = 0.0
        for p in range(start[row], start[row + 1]):
            j = items[p]
            if j == i or en[j] == 0:
                continue
            dx = xi - pos[j, 0]
            dy = yi - pos[j, 1]
            dz = zi - pos[j, 2]
            r2 = dx*dx + dy*dy + dz*dz
            s += vdw_pair(r2, radius[i], radius[j], eps[i], eps[j],
                          func, rmax, ecut, slope_in, slope_out, width_in, width_out)
        out[k] = s
    return out


@njit(fastmath=True)
def polar_query_sums(q_ids, q_rows, start, items, pos, aux, has_aux, role, en,
                     r12, dr12, strength, angle_min, acc_angle_min, dangle):
    nq = q_ids.shape[0]
    out = np.zeros(nq)
    for k in range(nq):
        i = q_ids[k]
        row = q_rows[k]
        if row < 0 or en[i] == 0 or role[i] == 0:
            continue
        s = 0.0
        for p in range(start[row], start[row + 1]):
            j = items[p]
            if j == i or en[j] == 0:
                continue
            if role[i] == DONOR and role[j] == ACCEPTOR:
                s += polar_pair(pos[i], aux[i], has_aux[i], pos[j], aux[j], has_aux[j],
                                r12, dr12, strength, angle_min, acc_angle_min, dangle)
            elif role[i] == ACCEPTOR and role[j] == DONOR:
                s += polar_pair(pos[j], aux[j], has_aux[j], pos[i], aux[i], has_aux[i],
                                r12, dr12, strength, angle_min, acc_angle_min, dangle)
        out[k] = s
    return out


@njit(fastmath=True)
def desolvation_query_sums(q_ids, q_rows, start, items, pos, en, solpar, volume, sigma, cutoff):
    nq = q_ids.shape[0]
    out = np.zeros(nq)
    inv = 1.0 / (2.0 * sigma * sigma)
    cutoff2 = cutoff * cutoff
    for k in range(nq):
        i = q_ids[k]
        row = q_rows[k]
        if row < 0 or en[i] == 0:
            continue
        xi = pos[i, 0]
        yi = pos[i, 1]
        zi = pos[i, 2]
        s = 0.0
        for p in range(start[row], start[row + 1]):
            j = items[p]
            if j == i or en[j] == 0:
                continue
            dx = xi - pos[j, 0]
            dy = yi - pos[j, 1]
            dz = zi - pos[j, 2]
            s += desolvation_pair(dx*dx + dy*dy + dz*dz, solpar[i], volume[i], solpar[j], volume[j], inv, cutoff2)
        out[k] = s
    return out
