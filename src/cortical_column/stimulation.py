"""
Stimulation Protocols
=====================

Drive the external input of a column between integration steps.

Modes:
- NONE: input stays at zero
- SEMI_PERIODIC: bursts of rectangular pulses every isi ms, with a uniform
  jitter of +/- isi_jitter ms on each interval
- PHASE_DEPENDENT: closed loop; a burst starts `delay` ms after the pyramidal
  voltage crosses `threshold` from above (onset of a down state), followed by
  a refractory period of isi ms

A burst is burst_count pulses of `strength` lasting `duration` ms each, with
onsets burst_interval ms apart.

The protocol only ever touches the column through the InputDrive capability
(set_input). All times are converted to whole steps of the column's dt.
"""

import numpy as np
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional

import logging

from .column import InputDrive
from .noise import Seed

logger = logging.getLogger(__name__)


class StimulationMode(Enum):
    NONE = "none"
    SEMI_PERIODIC = "semi_periodic"
    PHASE_DEPENDENT = "phase_dependent"


@dataclass
class StimulationSettings:
    """Stimulation protocol settings (times in ms, strength in ms^-1)"""

    mode: StimulationMode = StimulationMode.NONE
    strength: float = 2.0
    duration: float = 100.0
    isi: float = 5000.0
    isi_jitter: float = 1000.0
    burst_count: int = 1
    burst_interval: float = 1000.0

    # Phase dependent stimulation
    threshold: float = -68.0   # mV
    delay: float = 400.0

    def __post_init__(self):
        if not isinstance(self.mode, StimulationMode):
            self.mode = StimulationMode(self.mode)
        self.validate()

    @property
    def burst_span(self) -> float:
        """Time from the first pulse onset to the end of the last pulse"""
        return (self.burst_count - 1) * self.burst_interval + self.duration

    def validate(self) -> None:
        """Raise ValueError for settings that cannot be scheduled"""
        if self.mode is StimulationMode.NONE:
            return
        if self.duration <= 0:
            raise ValueError(f"Pulse duration must be positive, got {self.duration}")
        if self.burst_count < 1:
            raise ValueError(f"burst_count must be at least 1, got {self.burst_count}")
        if self.burst_count > 1 and self.burst_interval <= self.duration:
            raise ValueError(
                f"Pulses overlap: burst_interval={self.burst_interval} <= duration={self.duration}"
            )
        if self.delay < 0:
            raise ValueError(f"Delay must be non-negative, got {self.delay}")
        if not 0 <= self.isi_jitter < self.isi:
            raise ValueError(
                f"isi_jitter must lie in [0, isi), got isi_jitter={self.isi_jitter}, isi={self.isi}"
            )
        if self.isi - self.isi_jitter <= self.burst_span:
            raise ValueError(
                f"Bursts overlap: shortest interval {self.isi - self.isi_jitter} ms "
                f"<= burst span {self.burst_span} ms"
            )

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['mode'] = self.mode.value
        return d


class StimulationProtocol:
    """
    Schedules stimulation pulses and writes them to an InputDrive

    Call update(step_index, readout) before each integration step. The step
    index counts steps since the protocol started.

    Args:
        target: Object receiving set_input calls (usually the column)
        settings: Protocol settings
        dt: Step size of the driven column (ms)
        seed: Seed (int or SeedSequence) for the interval jitter
    """

    def __init__(self, target: InputDrive, settings: Optional[StimulationSettings] = None,
                 dt: float = 0.1, seed: Seed = None):
        if dt <= 0:
            raise ValueError(f"Step size must be positive, got dt={dt}")

        self.target = target
        self.settings = settings or StimulationSettings()
        self.dt = float(dt)
        self.rng = np.random.default_rng(seed)

        s = self.settings
        self.duration_steps = self._to_steps(s.duration)
        self.burst_interval_steps = self._to_steps(s.burst_interval)
        self.delay_steps = self._to_steps(s.delay)
        self.isi_steps = self._to_steps(s.isi)

        # Pending pulse onsets (steps) and end of the active pulse
        self._pulse_onsets: List[int] = []
        self._pulse_end: Optional[int] = None
        self._last_burst_start = 0
        self._refractory_until = 0
        self._previous_vp: Optional[float] = None

        # Onset times of delivered pulses (ms since protocol start)
        self.marker_times: List[float] = []

        if s.mode is StimulationMode.SEMI_PERIODIC:
            self._schedule_burst(self._next_interval())

        logger.info(f"Initialized stimulation protocol: mode={s.mode.value}, "
                    f"strength={s.strength}, duration={s.duration} ms")

    def _to_steps(self, ms: float) -> int:
        return int(round(ms / self.dt))

    def _next_interval(self) -> int:
        s = self.settings
        jitter = self.rng.uniform(-s.isi_jitter, s.isi_jitter) if s.isi_jitter > 0 else 0.0
        return self._to_steps(s.isi + jitter)

    def _schedule_burst(self, start: int) -> None:
        self._pulse_onsets = [start + k * self.burst_interval_steps
                              for k in range(self.settings.burst_count)]

    @property
    def active(self) -> bool:
        """True while a pulse is being delivered"""
        return self._pulse_end is not None

    def update(self, step_index: int, readout: Optional[Dict[str, float]] = None) -> None:
        """
        Advance the protocol to step_index

        Args:
            step_index: Steps elapsed since the protocol started
            readout: Column read-out; PHASE_DEPENDENT needs 'Vp'
        """
        mode = self.settings.mode
        if mode is StimulationMode.NONE:
            return

        # === END OF PULSE ===
        if self._pulse_end is not None and step_index >= self._pulse_end:
            self.target.set_input(0.0)
            self._pulse_end = None
            if mode is StimulationMode.SEMI_PERIODIC and not self._pulse_onsets:
                self._schedule_burst(self._last_burst_start + self._next_interval())

        # === DOWN STATE DETECTION ===
        if mode is StimulationMode.PHASE_DEPENDENT:
            if readout is None or 'Vp' not in readout:
                raise ValueError("Phase dependent stimulation needs 'Vp' in the read-out")
            vp = readout['Vp']
            if (not self._pulse_onsets and self._pulse_end is None
                    and step_index >= self._refractory_until
                    and self._previous_vp is not None
                    and self._previous_vp >= self.settings.threshold > vp):
                start = step_index + self.delay_steps
                self._schedule_burst(start)
                self._refractory_until = start + self.isi_steps
                logger.debug(f"Down state detected at step {step_index}, burst at step {start}")
            self._previous_vp = vp

        # === START OF PULSE ===
        if self._pulse_onsets and step_index >= self._pulse_onsets[0]:
            onset = self._pulse_onsets.pop(0)
            if len(self._pulse_onsets) == self.settings.burst_count - 1:
                self._last_burst_start = onset
            self.target.set_input(self.settings.strength)
            self._pulse_end = step_index + self.duration_steps
            self.marker_times.append(step_index * self.dt)
            logger.debug(f"Stimulation pulse at {step_index * self.dt:.1f} ms")
