"""Drive repeated oracle passes to a textual fixed point.

ruff's library bindings do not iterate on fixes the way its CLI does, and one
round of fixes regularly unlocks another (adding an import makes the block
unsorted). The driver re-runs every configured pass until a whole round leaves
the text unchanged, and gives up after a fixed number of rounds.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from important.edits import Edit
from important.errors import DepthLimitExceededError, OracleInvocationError
from important.normalizer import normalize
from important.oracle.base import Oracle, OracleConfig, fix_edits
from important.patcher import apply_edits

logger = logging.getLogger(__name__)

DEFAULT_DEPTH_LIMIT = 5


@dataclass
class ConvergenceResult:
    """Outcome of a converged run.

    Attributes:
        final_text: Text at the fixed point.
        batches: Normalized edit batches in application order; each batch is
            valid against the text produced by the batches before it.
        iterations: Number of rounds run, including the final unchanged one.
    """

    final_text: str
    batches: list[list[Edit]] = field(default_factory=list)
    iterations: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.batches)


class ConvergenceDriver:
    """Run oracle passes round after round until the text stops changing.

    Attributes:
        oracle: Oracle consulted for every pass.
        depth_limit: Highest round index allowed; a run that has not settled
            after ``depth_limit + 1`` rounds fails.
    """

    def __init__(self, oracle: Oracle, depth_limit: int = DEFAULT_DEPTH_LIMIT) -> None:
        if depth_limit < 0:
            raise ValueError("depth_limit must be non-negative")
        self.oracle = oracle
        self.depth_limit = depth_limit

    def run(self, text: str, configs: Sequence[OracleConfig]) -> ConvergenceResult:
        """Apply the fixes of every config, in order, until a fixed point.

        Args:
            text: Starting text.
            configs: Passes to run each round. Order matters: a pass sees the
                text left by the passes before it.

        Returns:
            ConvergenceResult with the final text and the applied batches.

        Raises:
            OracleInvocationError: If a pass fails. ``text`` and ``batches`` on
                the exception hold the state reached, including batches
                applied earlier in the failing round.
            DepthLimitExceededError: If the text is still changing after
                ``depth_limit + 1`` rounds.
        """
        batches: list[list[Edit]] = []
        iteration = 0
        while True:
            if iteration > self.depth_limit:
                raise DepthLimitExceededError(self.depth_limit, text=text, batches=batches)

            previous = text
            for config in configs:
                try:
                    diagnostics = self.oracle.check(text, config)
                except OracleInvocationError as e:
                    e.text = text
                    e.batches = batches
                    raise

                edits = normalize(fix_edits(diagnostics))
                if not edits:
                    continue

                logger.debug(
                    "Round %d, %s: applying %d edit(s): %s",
                    iteration,
                    config.label(),
                    len(edits),
                    [edit.to_dict() for edit in edits],
                )
                text = apply_edits(text, edits)
                batches.append(edits)

            iteration += 1
            if text == previous:
                return ConvergenceResult(final_text=text, batches=batches, iterations=iteration)
