"""
Pull-based stepping over the compiler and evaluator generators.

A Stepper is driven by its caller: each ``step()`` resumes the underlying
computation up to its next transition. Abandoning a stepper cancels the run.
"""

from dataclasses import dataclass
from typing import Generator, Generic, Iterator, Optional, TypeVar, cast

S = TypeVar("S")
R = TypeVar("R")


@dataclass(frozen=True)
class StepOutcome(Generic[S, R]):
    """Either the next step descriptor or, once done, the final result."""

    done: bool
    step: Optional[S] = None
    result: Optional[R] = None


class Stepper(Generic[S, R]):
    """Wraps a step-yielding generator whose return value is the result."""

    def __init__(self, generator: Generator[S, None, R]):
        self._generator = generator
        self._done = False
        self._result: Optional[R] = None

    @property
    def done(self) -> bool:
        return self._done

    @property
    def result(self) -> Optional[R]:
        """The final result; None until the stepper is exhausted."""
        return self._result

    def step(self) -> StepOutcome[S, R]:
        if self._done:
            return StepOutcome(done=True, result=self._result)
        try:
            step = next(self._generator)
        except StopIteration as stop:
            self._done = True
            self._result = stop.value
            return StepOutcome(done=True, result=self._result)
        return StepOutcome(done=False, step=step)

    def run(self) -> R:
        """Runs to completion and returns the result."""
        for _ in self:
            pass
        return cast(R, self._result)

    def __iter__(self) -> Iterator[S]:
        while True:
            outcome = self.step()
            if outcome.done:
                return
            yield cast(S, outcome.step)


def run_to_completion(generator: Generator[S, None, R]) -> R:
    """Drives a generator until it returns and yields its return value."""
    return Stepper(generator).run()
