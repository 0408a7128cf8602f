import warnings
import numpy as np
import scipy.sparse as sp


"""
Iterative surface Green's functions of semi-infinite nearest-cell leads
(Lopez Sancho-Rubio decimation). Slower than the Schur solver but
independent of it, which makes it a useful cross-check.
"""


def _dense(mat):
    return mat.toarray() if sp.issparse(mat) else np.asarray(mat)


def sancho_rubio_surface_gf(E, H00, Hout, Hin, iter_max=200, TOL=1e-12):
    """
    Surface Green's function of a semi-infinite lead.
    Hout hops from a cell into the next cell of the lead (away from the surface),
    Hin hops back towards the surface.
    """
    H00, Hout, Hin = (_dense(m).astype(complex) for m in (H00, Hout, Hin))
    n = H00.shape[0]
    I = np.eye(n, dtype=complex)
    alpha = Hin.copy()    # into the surface side
    beta = Hout.copy()    # away from the surface
    epsilon = H00.copy()
    epsilon_s = H00.copy()
    for _ in range(iter_max):
        inv_term = np.linalg.solve(E * I - epsilon, I)
        a_g_b = alpha @ inv_term @ beta
        b_g_a = beta @ inv_term @ alpha
        epsilon_s = epsilon_s + a_g_b
        epsilon = epsilon + a_g_b + b_g_a
        alpha = alpha @ inv_term @ alpha
        beta = beta @ inv_term @ beta
        if np.linalg.norm(alpha, ord='fro') < TOL and np.linalg.norm(beta, ord='fro') < TOL:
            break
    else:
        warnings.warn(f"Surface GF did not converge after {iter_max} iterations", stacklevel=2)
    return np.linalg.solve(E * I - epsilon_s, I)


def lead_self_energy(E, hm, h0, hp, side="right", **kwargs):
    """Self-energy on the cell a lead is attached to, for a lead extending to ``side``.

    ``hp`` hops from cell n into n+1 and ``hm = hp^dagger`` from n into n-1.
    """
    hm, hp = _dense(hm), _dense(hp)
    if side == "right":
        g_s = sancho_rubio_surface_gf(E, h0, hp, hm, **kwargs)
        return hm @ g_s @ hp
    elif side == "left":
        g_s = sancho_rubio_surface_gf(E, h0, hm, hp, **kwargs)
        return hp @ g_s @ hm
    else:
        raise ValueError(f"Unknown side: {side}")
