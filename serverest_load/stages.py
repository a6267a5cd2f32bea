"""
Stage-driven load shape.

Each stage ramps the number of concurrent users linearly from the
previous stage's target (0 for the first stage) to its own target over
its duration.  The run ends once every stage has elapsed.
"""

from __future__ import annotations

from collections.abc import Sequence

from locust import LoadTestShape

from serverest_load.config import Stage, load_options


def target_at(stages: Sequence[Stage], elapsed: float) -> int | None:
    """
    Return the user count the stages call for *elapsed* seconds into the run.

    Returns:
        The interpolated user count, or ``None`` once all stages are over.
    """
    stage_start = 0.0
    previous_target = 0
    for stage in stages:
        stage_end = stage_start + stage.duration
        if elapsed < stage_end:
            fraction = (elapsed - stage_start) / stage.duration
            users = previous_target + (stage.target - previous_target) * fraction
            return int(round(users))
        stage_start = stage_end
        previous_target = stage.target
    return None


def ramp_spawn_rate(stages: Sequence[Stage]) -> float:
    """Steepest per-second change any stage asks for, at least 1 user/s."""
    rate = 1.0
    previous_target = 0
    for stage in stages:
        if stage.duration > 0:
            rate = max(rate, abs(stage.target - previous_target) / stage.duration)
        previous_target = stage.target
    return rate


class StagesShape(LoadTestShape):
    """
    Drive Locust's user count from the configured stages.

    Locust calls :meth:`tick` about once a second; returning ``None``
    stops the test.
    """

    def __init__(self, stages: Sequence[Stage] | None = None) -> None:
        super().__init__()
        if stages is None:
            stages = load_options().stages
        self.stages = tuple(stages)
        self.spawn_rate = ramp_spawn_rate(self.stages)

    def tick(self) -> tuple[int, float] | None:
        users = target_at(self.stages, self.get_run_time())
        if users is None:
            return None
        return users, self.spawn_rate
