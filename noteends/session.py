"""Run the randomizer repeatedly with seed rotation and run statistics."""

from __future__ import annotations

import logging
from typing import Optional

from .engine import NO_OP, RunResult, process_active_take
from .host import Host
from .randomizer import Seed
from .settings import RandomizerSettings

logger = logging.getLogger(__name__)

AUTO_SEED_INTERVAL = 3


class RandomizerSession:
    """Carry settings across runs and rotate the seed every few runs.

    After ``auto_seed_interval`` runs the seed is replaced with a fresh one,
    so repeated runs keep producing new variations.  ``new_seed`` resets the
    count.
    """

    def __init__(
        self,
        settings: RandomizerSettings,
        *,
        auto_seed_interval: int = AUTO_SEED_INTERVAL,
    ) -> None:
        if auto_seed_interval < 1:
            raise ValueError(f"auto_seed_interval must be >= 1, got {auto_seed_interval}")
        self.settings = settings
        self.auto_seed_interval = auto_seed_interval
        self.cycles = 0
        self.last_result: Optional[RunResult] = None

    @property
    def seed(self) -> Seed:
        return self.settings.seed

    def new_seed(self) -> Seed:
        seed = self.settings.seed.regenerate()
        self.settings = self.settings.replace_seed(seed)
        self.cycles = 0
        logger.debug("new seed %d", seed.value)
        return seed

    def run(self, host: Host) -> RunResult:
        result = process_active_take(
            host,
            apply_to_all=self.settings.apply_to_all,
            intensity=self.settings.intensity,
            seed=self.settings.seed,
        )
        self.last_result = result
        if result is NO_OP:
            return result
        self.cycles += 1
        if self.cycles >= self.auto_seed_interval:
            self.new_seed()
        return result

    def statistics_line(self) -> str:
        result = self.last_result
        if result is None:
            return ""
        text = f"Statistics: {result.elapsed:.3f}s"
        if result.modified_count > 0:
            text += f" | {result.modified_count} note(s) | {result.notes_per_second:.0f}/s"
        return text
