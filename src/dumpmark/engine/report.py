"""Outcome tracking for one annotation run."""

from dataclasses import field, dataclass
from enum import IntEnum, auto

from dumpmark.dump.records import Category


class OutcomeKind(IntEnum):
    """Result of a single mutation step."""

    APPLIED = auto()
    SKIPPED = auto()  # Step not needed or not attempted
    FAILED = auto()  # Host refused or raised


@dataclass(frozen=True)
class StepOutcome:
    """One step of one record's mutation chain."""

    category: Category
    step: str
    kind: OutcomeKind
    address: int | None = None
    reason: str | None = None

    @classmethod
    def applied(cls, category: Category, step: str, address: int | None) -> "StepOutcome":
        return cls(category, step, OutcomeKind.APPLIED, address)

    @classmethod
    def skipped(
        cls, category: Category, step: str, address: int | None, reason: str
    ) -> "StepOutcome":
        return cls(category, step, OutcomeKind.SKIPPED, address, reason)

    @classmethod
    def failed(
        cls, category: Category, step: str, address: int | None, reason: str
    ) -> "StepOutcome":
        return cls(category, step, OutcomeKind.FAILED, address, reason)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.APPLIED


@dataclass
class CategoryTally:
    """Per-category record counts."""

    present: bool = False
    seen: int = 0
    applied: int = 0
    skipped: int = 0
    failed_steps: int = 0  # Soft steps that failed on applied records


def format_address(address: int) -> str:
    """Render an absolute address the way diagnostics show it."""
    return f"0x{address:016x}"


def format_diagnostic(
    category: Category, message: str, address: int | None = None, detail: str | None = None
) -> str:
    """Build one diagnostic line: category, message, address and detail."""
    line = f"{category}: {message}"
    if address is not None:
        line += f" at {format_address(address)}"
    if detail is not None:
        line += f": {detail}"
    return line


@dataclass
class Report:
    """Everything one engine run did and did not do."""

    tallies: dict[Category, CategoryTally] = field(
        default_factory=lambda: {c: CategoryTally() for c in Category}
    )
    outcomes: list[StepOutcome] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    cancelled: bool = False

    def tally(self, category: Category) -> CategoryTally:
        return self.tallies[category]

    def record(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def note(self, line: str) -> None:
        self.diagnostics.append(line)

    def outcomes_for(self, category: Category) -> list[StepOutcome]:
        return [o for o in self.outcomes if o.category == category]

    @property
    def seen(self) -> int:
        return sum(t.seen for t in self.tallies.values())

    @property
    def applied(self) -> int:
        return sum(t.applied for t in self.tallies.values())

    @property
    def skipped(self) -> int:
        return sum(t.skipped for t in self.tallies.values())

    def summary(self) -> dict[str, dict[str, int]]:
        """Counts per category, for logging and display."""
        return {
            str(category): {
                "seen": t.seen,
                "applied": t.applied,
                "skipped": t.skipped,
                "failed_steps": t.failed_steps,
            }
            for category, t in self.tallies.items()
        }
