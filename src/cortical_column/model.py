"""
Neural Mass Equations
=====================

Firing rates, currents and time derivatives of the cortical column.

All functions are pure: they read a state (scalars or the full state vector)
and the parameters, and return new values. Nothing is cached or mutated, so
every quantity can be tested on its own and the integrator can evaluate the
model at arbitrary stage points.

The equations:

    Q_p(V)   = Qp_max / (1 + exp(-C1 (V - theta_p) / sigma_p))
    I_syn    = g_syn s (V - E_syn)
    I_L      = g_L (V - E_L)
    I_KNa    = g_KNa m_KNa(Na) (V - E_K)
    tau_p dVp/dt = -(I_L_p + I_ep + I_gp + I_KNa)
    tau_i dVi/dt = -(I_L_i + I_ei + I_gi)
    dNa/dt   = (alpha_Na Q_p - Na_pump(Na)) / tau_Na
    dx/dt    = gamma^2 (drive - s) - 2 gamma x,   ds/dt = x

Non-finite values are not checked for; they propagate through numpy as
inf/nan.
"""

import numpy as np
from typing import Dict

from .parameters import ColumnParameters, N_VARIABLES


# =============================================================================
# FIRING RATES
# =============================================================================

def sigmoid_rate(V, q_max: float, theta: float, sigma: float, C1: float):
    """Population firing rate for mean membrane voltage V"""
    return q_max / (1.0 + np.exp(-C1 * (V - theta) / sigma))


def firing_rate_p(Vp, params: ColumnParameters):
    """Pyramidal firing rate Q_p (ms^-1)"""
    return sigmoid_rate(Vp, params.Qp_max, params.theta_p, params.sigma_p, params.C1)


def firing_rate_i(Vi, params: ColumnParameters):
    """Interneuron firing rate Q_i (ms^-1)"""
    return sigmoid_rate(Vi, params.Qi_max, params.theta_i, params.sigma_i, params.C1)


# =============================================================================
# CURRENTS
# =============================================================================

def synaptic_current(g_syn: float, s, V, E_syn: float):
    """Conductance based synaptic current g s (V - E)"""
    return g_syn * s * (V - E_syn)


def I_ep(s_ep, Vp, params: ColumnParameters):
    return synaptic_current(params.g_AMPA, s_ep, Vp, params.E_AMPA)


def I_ei(s_ei, Vi, params: ColumnParameters):
    return synaptic_current(params.g_AMPA, s_ei, Vi, params.E_AMPA)


def I_gp(s_gp, Vp, params: ColumnParameters):
    return synaptic_current(params.g_GABA, s_gp, Vp, params.E_GABA)


def I_gi(s_gi, Vi, params: ColumnParameters):
    return synaptic_current(params.g_GABA, s_gi, Vi, params.E_GABA)


def I_L_p(Vp, params: ColumnParameters):
    return params.g_L * (Vp - params.E_L_p)


def I_L_i(Vi, params: ColumnParameters):
    return params.g_L * (Vi - params.E_L_i)


def KNa_activation(Na, params: ColumnParameters):
    """
    Fraction of open KNa channels

    Equal to KNa_max / (1 + (KNa_half / Na)^hill), written so that
    Na = 0 gives zero instead of a division by zero.
    """
    na_h = np.power(Na, params.KNa_hill)
    return params.KNa_max * na_h / (na_h + params.KNa_half ** params.KNa_hill)


def I_KNa(Na, Vp, params: ColumnParameters):
    """Sodium-activated potassium current (pyramidal population only)"""
    return params.g_KNa * KNa_activation(Na, params) * (Vp - params.E_K)


# =============================================================================
# SODIUM PUMP
# =============================================================================

def Na_pump(Na, params: ColumnParameters):
    """
    Na-K pump efflux, zero at the equilibrium concentration Na_eq

    Saturating Hill term of order 3 with half activation pump_half.
    """
    k3 = params.pump_half ** 3
    na3 = np.power(Na, 3)
    eq3 = params.Na_eq ** 3
    return params.R_pump * (na3 / (na3 + k3) - eq3 / (eq3 + k3))


# =============================================================================
# DERIVATIVES
# =============================================================================

def psp_acceleration(drive, s, x, gamma: float):
    """Second order PSP filter: dx/dt = gamma^2 (drive - s) - 2 gamma x"""
    return gamma * gamma * (drive - s) - 2.0 * gamma * x


def derivatives(y: np.ndarray, params: ColumnParameters,
                input_drive: float = 0.0) -> np.ndarray:
    """
    Time derivatives of all state variables

    Args:
        y: State vector in STATE_VARIABLES order
        params: Column parameters
        input_drive: External input added to the pyramidal -> pyramidal drive

    Returns:
        New array of derivatives in STATE_VARIABLES order (per ms)
    """
    Vp, Vi, Na, s_ep, s_ei, s_gp, s_gi, x_ep, x_ei, x_gp, x_gi = y

    Qp = firing_rate_p(Vp, params)
    Qi = firing_rate_i(Vi, params)

    dy = np.empty(N_VARIABLES)

    # Membrane voltages
    dy[0] = -(I_L_p(Vp, params) + I_ep(s_ep, Vp, params) + I_gp(s_gp, Vp, params)
              + I_KNa(Na, Vp, params)) / params.tau_p
    dy[1] = -(I_L_i(Vi, params) + I_ei(s_ei, Vi, params) + I_gi(s_gi, Vi, params)) / params.tau_i

    # Sodium balance
    dy[2] = (params.alpha_Na * Qp - Na_pump(Na, params)) / params.tau_Na

    # PSP amplitudes
    dy[3] = x_ep
    dy[4] = x_ei
    dy[5] = x_gp
    dy[6] = x_gi

    # PSP derivatives; the noise on x_ep is added by the integrator
    dy[7] = psp_acceleration(params.N_pp * Qp + input_drive + params.mphi,
                             s_ep, x_ep, params.gamma_e)
    dy[8] = psp_acceleration(params.N_ip * Qp, s_ei, x_ei, params.gamma_e)
    dy[9] = psp_acceleration(params.N_pi * Qi, s_gp, x_gp, params.gamma_g)
    dy[10] = psp_acceleration(params.N_ii * Qi, s_gi, x_gi, params.gamma_g)

    return dy


def firing_rates(y: np.ndarray, params: ColumnParameters) -> Dict[str, float]:
    """Both population firing rates at state y"""
    return {
        'Qp': float(firing_rate_p(y[0], params)),
        'Qi': float(firing_rate_i(y[1], params)),
    }


def currents(y: np.ndarray, params: ColumnParameters) -> Dict[str, float]:
    """All membrane currents at state y, for diagnostics"""
    Vp, Vi, Na, s_ep, s_ei, s_gp, s_gi = y[:7]
    return {
        'I_L_p': float(I_L_p(Vp, params)),
        'I_L_i': float(I_L_i(Vi, params)),
        'I_ep': float(I_ep(s_ep, Vp, params)),
        'I_ei': float(I_ei(s_ei, Vi, params)),
        'I_gp': float(I_gp(s_gp, Vp, params)),
        'I_gi': float(I_gi(s_gi, Vi, params)),
        'I_KNa': float(I_KNa(Na, Vp, params)),
        'Na_pump': float(Na_pump(Na, params)),
    }
