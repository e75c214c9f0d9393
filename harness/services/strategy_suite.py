"""
Strategy Suite
Outer/inner scope lifecycle around the four standard strategy cases.

    setup()      outer snapshot + harness build
    run_case()   inner snapshot -> check -> rollback
    teardown()   roll the outer snapshot back

Cases:
- do hard work with liq path
- emergency exit
- common test should be ok
- doHardWork loop
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from infrastructure.config import HarnessConfig, get_config
from infrastructure.errors import ErrorTracker
from infrastructure.ledger import Ledger

from services.harness_builder import ConversionTargets, HarnessBuilder, StrategyDescriptor, StrategyHarness
from services.invariant_verifier import InvariantVerifier
from services.state_scope import ScopeHandle, StateScope

logger = logging.getLogger("StrategySuite")


@dataclass
class CaseResult:
    name: str
    passed: bool
    duration_ms: float
    error: Optional[str] = None
    error_type: Optional[str] = None


@dataclass
class SuiteReport:
    """Per-case outcome of one suite run"""
    suite: str
    cases: List[CaseResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return bool(self.cases) and all(c.passed for c in self.cases)

    @property
    def failures(self) -> List[CaseResult]:
        return [c for c in self.cases if not c.passed]

    def to_dict(self) -> Dict:
        return {
            "suite": self.suite,
            "passed": self.passed,
            "cases": [
                {
                    "name": c.name,
                    "passed": c.passed,
                    "duration_ms": round(c.duration_ms, 1),
                    "error": c.error,
                    "error_type": c.error_type,
                }
                for c in self.cases
            ],
        }


class StrategySuite:
    """
    Usage:
        suite = StrategySuite(ledger, builder, descriptor, [ice], targets)
        report = await suite.run_all()
    """

    def __init__(
        self,
        ledger: Ledger,
        builder: HarnessBuilder,
        descriptor: StrategyDescriptor,
        reward_tokens: List[str],
        conversion_targets: ConversionTargets,
        config: Optional[HarnessConfig] = None,
        tracker: Optional[ErrorTracker] = None,
    ):
        self.ledger = ledger
        self.builder = builder
        self.descriptor = descriptor
        self.reward_tokens = reward_tokens
        self.conversion_targets = conversion_targets
        self.config = config or get_config()
        self.tracker = tracker or ErrorTracker()

        self.scope = StateScope(ledger)
        self.verifier = InvariantVerifier(ledger, self.config)
        self.harness: Optional[StrategyHarness] = None
        self._outer: Optional[ScopeHandle] = None

    @property
    def name(self) -> str:
        return f"{self.descriptor.strategy_name} {self.descriptor.token_names}"

    async def setup(self) -> StrategyHarness:
        self._outer = await self.scope.snapshot(f"suite {self.name}")
        try:
            self.harness = await self.builder.build(self.descriptor, self.reward_tokens, self.conversion_targets)
        except Exception:
            await self.teardown()
            raise
        return self.harness

    async def teardown(self):
        if self._outer is not None:
            await self.scope.rollback(self._outer)
            self._outer = None
        self.harness = None

    async def run_case(self, name: str, check: Callable[[StrategyHarness], Awaitable]) -> CaseResult:
        if self.harness is None:
            raise RuntimeError("StrategySuite.setup() must run before cases")

        started = time.time()
        async with self.scope.scope(name):
            try:
                await check(self.harness)
            except Exception as e:
                self.tracker.track(e, context=f"{self.name} :: {name}")
                logger.error(f"✗ {name}: {e}")
                return CaseResult(
                    name=name,
                    passed=False,
                    duration_ms=(time.time() - started) * 1000,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info(f"✓ {name}")
        return CaseResult(name=name, passed=True, duration_ms=(time.time() - started) * 1000)

    def standard_cases(self) -> List:
        loop = self.config.loop

        async def liq_path(harness):
            await self.verifier.do_hard_work_with_liq_path(
                harness, await harness.user_underlying_balance(), harness.strategy.ready_to_claim
            )

        async def emergency_exit(harness):
            await self.verifier.check_emergency_exit(harness)

        async def common(harness):
            await self.verifier.common_tests(harness)

        async def hard_work_loop(harness):
            await self.verifier.do_hard_work_loop(
                harness, await harness.user_underlying_balance(), loop.cycles, loop.seconds_per_cycle
            )

        return [
            ("do hard work with liq path", liq_path),
            ("emergency exit", emergency_exit),
            ("common test should be ok", common),
            ("doHardWork loop", hard_work_loop),
        ]

    async def run_all(self) -> SuiteReport:
        report = SuiteReport(suite=self.name)
        await self.setup()
        try:
            for name, check in self.standard_cases():
                report.cases.append(await self.run_case(name, check))
        finally:
            await self.teardown()

        logger.info(f"{self.name}: {len(report.cases) - len(report.failures)}/{len(report.cases)} passed")
        return report
