"""
sim/controller.py
=================
Per-intersection adaptive signal controller.

A :class:`PhaseController` owns a Q-table over ``phase × duration``
actions.  On each decision it scores the previous action with a
congestion reward, updates the table, picks the next action
epsilon-greedily, applies the phase to every light of its group and waits
for the chosen duration before deciding again.

The state space is collapsed to a single state (``state == next_state ==
0``), so the update behaves like a bandit with a self-referential
bootstrap.  ``num_states`` is kept as the extension point for a richer
state encoding.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from ml.history import DecisionHistory
from ml.persistence import QTableStore
from ml.q_table import ActionSpace, QTable
from sim.census import TrafficCensus
from sim.scheduler import TickDispatcher
from sim.signals import SignalRegistry, TrafficLight

log = logging.getLogger("controller")

NUM_STATES = 1


class PhaseController:
    """Q-learning controller driving the lights whose ``controller_id`` matches.

    Parameters
    ----------
    controller_id : str
        Group id shared with the lights it drives (e.g. ``"MAIN"``).
    dispatcher : TickDispatcher
        Clock running the decision timer.
    registry : SignalRegistry
        Where the controller registers itself and finds its lights.
    census : TrafficCensus or None
        Reward source; the reward is 0 without one.
    num_phases : int
        Number of light combinations this controller can choose.
    duration_options : sequence of float
        Durations (seconds) a phase can be held for.
    alpha, gamma, epsilon : float
        Learning rate, discount factor, exploration probability.
    waiting_weight : float
        Extra cost per waiting vehicle in the reward.
    initial_delay_s : float
        Wait before the first decision.
    fallback_duration_s : float
        Used instead of a chosen duration that is not positive.
    auto_control : bool
        Run the decision loop on :meth:`start`; otherwise only :meth:`step`.
    store : QTableStore or None
        Persistence backend for the Q-table.
    load_on_start, save_on_shutdown : bool
        Restore the table at construction / persist it on :meth:`destroy`.
    history : DecisionHistory or None
        Receives one row per decision.
    rng : random.Random or None
        Source of exploration randomness.
    """

    def __init__(
        self,
        controller_id: str,
        dispatcher: TickDispatcher,
        registry: SignalRegistry,
        census: Optional[TrafficCensus] = None,
        num_phases: int = 2,
        duration_options: Optional[Sequence[float]] = (8.0, 12.0),
        alpha: float = 0.1,
        gamma: float = 0.9,
        epsilon: float = 0.1,
        waiting_weight: float = 2.0,
        initial_delay_s: float = 1.0,
        fallback_duration_s: float = 1.0,
        auto_control: bool = True,
        store: Optional[QTableStore] = None,
        load_on_start: bool = True,
        save_on_shutdown: bool = True,
        history: Optional[DecisionHistory] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.controller_id = controller_id
        self.alpha = alpha
        self.gamma = gamma
        self.epsilon = epsilon
        self.waiting_weight = waiting_weight
        self.initial_delay_s = max(0.0, initial_delay_s)
        self.fallback_duration_s = fallback_duration_s if fallback_duration_s > 0 else 1.0
        self.auto_control = auto_control
        self.save_on_shutdown = save_on_shutdown

        self.actions = ActionSpace.create(num_phases, duration_options)
        self.q_table = QTable(NUM_STATES, self.actions.size)
        self.current_state = 0
        self.last_action: Optional[int] = None
        self.last_reward: Optional[float] = None
        self.current_phase: Optional[int] = None
        self.current_duration_s: Optional[float] = None
        self.decisions = 0

        self._dispatcher = dispatcher
        self._registry = registry
        self._census = census
        self._store = store
        self._history = history
        self._rng = rng or random.Random()
        self._lights: List[TrafficLight] = []
        self._timer = dispatcher.create_timer(f"controller:{controller_id}", self._on_timer)
        self._destroyed = False

        registry.register_controller(self)
        if load_on_start:
            self.load_q_table()

    # ── local lights ──────────────────────────────────────────────────────

    @property
    def num_phases(self) -> int:
        return self.actions.num_phases

    def lights(self) -> List[TrafficLight]:
        return list(self._lights)

    def attach_light(self, light: TrafficLight) -> bool:
        """Add *light* to the local set.

        Rejected (logged, False) when its green-phase vector does not have
        one entry per phase of this controller.
        """
        if light.controller_id != self.controller_id:
            return False
        if light.phase_count != self.num_phases:
            log.error(
                "Light '%s' has %d green-phase entries but controller '%s' has %d phases; "
                "not attached", light.light_id, light.phase_count,
                self.controller_id, self.num_phases,
            )
            return False
        if light not in self._lights:
            self._lights.append(light)
            if self.current_phase is not None:
                light.set_phase(self.current_phase)
        return True

    def detach_light(self, light: TrafficLight) -> None:
        if light in self._lights:
            self._lights.remove(light)

    # ── control loop ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Schedule the first decision after ``initial_delay_s``."""
        if self._destroyed or not self.auto_control:
            return
        self._timer.start(self.initial_delay_s)

    def stop(self) -> None:
        self._timer.cancel()

    @property
    def running(self) -> bool:
        return self._timer.pending

    def _on_timer(self) -> None:
        wait_s = self.step()
        self._timer.start(wait_s)

    def compute_reward(self) -> float:
        """``-(active + waiting_weight × waiting)`` from the census."""
        if self._census is None:
            return 0.0
        cost = self._census.active_count + self.waiting_weight * self._census.waiting_count
        return -float(cost)

    def step(self) -> float:
        """Run one decision and return how long to hold it (seconds)."""
        s = self.current_state
        reward = None
        if self.last_action is not None:
            reward = self.compute_reward()
            self.q_table.update(s, self.last_action, reward, s, self.alpha, self.gamma)
            self.last_reward = reward

        action, explored = self.q_table.select_action(s, self.epsilon, self._rng)
        phase, duration_s = self.actions.decode(action)
        self.apply_phase(phase)

        self.last_action = action
        self.current_phase = phase
        self.current_duration_s = duration_s
        self.decisions += 1

        log.debug(
            "%s decision #%d: reward=%s action=%d (%s) phase=%d duration=%.1fs q=%.3f",
            self.controller_id, self.decisions,
            "n/a" if reward is None else f"{reward:.2f}",
            action, "explore" if explored else "exploit",
            phase, duration_s, self.q_table.values[s, action],
        )
        if self._history is not None:
            self._history.record(
                time_s=self._dispatcher.now,
                controller_id=self.controller_id,
                action=action,
                phase=phase,
                duration_s=duration_s,
                reward=reward,
                explored=explored,
                q_value=float(self.q_table.values[s, action]),
                active_vehicles=self._census.active_count if self._census else None,
                waiting_vehicles=self._census.waiting_count if self._census else None,
            )

        if duration_s <= 0.0:
            log.warning("%s chose non-positive duration %.2f; using %.1fs",
                        self.controller_id, duration_s, self.fallback_duration_s)
            return self.fallback_duration_s
        return duration_s

    def apply_phase(self, phase_index: int) -> None:
        for light in list(self._lights):
            light.set_phase(phase_index)

    # ── persistence ───────────────────────────────────────────────────────

    def load_q_table(self) -> bool:
        """Restore the table from the store; False when absent or incompatible."""
        if self._store is None:
            return False
        record = self._store.load(self.controller_id)
        if record is None:
            return False
        loaded = self.q_table.load_record(record)
        if loaded:
            log.info("Q-table for '%s' restored", self.controller_id)
        return loaded

    def save_q_table(self) -> bool:
        if self._store is None:
            return False
        return self._store.save(self.q_table.to_record(self.controller_id))

    # ── teardown ──────────────────────────────────────────────────────────

    def destroy(self) -> None:
        """Cancel the loop, leave the registry and persist the table."""
        if self._destroyed:
            return
        self._destroyed = True
        self._dispatcher.remove(self._timer)
        self._registry.unregister_controller(self)
        self._lights.clear()
        if self.save_on_shutdown:
            self.save_q_table()

    def as_dict(self) -> dict:
        return {
            "controller_id": self.controller_id,
            "num_phases": self.num_phases,
            "duration_options": list(self.actions.duration_options),
            "q_values": [float(v) for v in self.q_table.row(self.current_state)],
            "last_action": self.last_action,
            "last_reward": self.last_reward,
            "current_phase": self.current_phase,
            "current_duration_s": self.current_duration_s,
            "decisions": self.decisions,
            "lights": [tl.light_id for tl in self._lights],
        }
