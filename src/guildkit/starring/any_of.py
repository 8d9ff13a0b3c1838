from __future__ import annotations

from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

Check = Callable[[T], Awaitable[R]]
AnyOfResult = Callable[[T], Awaitable[Optional[tuple[str, R]]]]


class StepList(Generic[T, R]):
    """Ordered ``(name, check)`` pairs.

    Order is the evaluation order, so it is kept explicitly rather than
    relying on mapping iteration.
    """

    def __init__(self) -> None:
        self._steps: list[tuple[str, Check[T, R]]] = []

    def add(self, name: str, check: Check[T, R]) -> None:
        if any(existing == name for existing, _ in self._steps):
            raise ValueError(f"Step {name!r} is already registered")
        self._steps.append((name, check))

    def names(self) -> list[str]:
        return [name for name, _ in self._steps]

    def __iter__(self):
        return iter(list(self._steps))

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, name: object) -> bool:
        return any(existing == name for existing, _ in self._steps)


def called_any_of(
    steps: Sequence[tuple[str, Check[T, R]]] | StepList[T, R],
    how: Optional[Callable[[R], bool]] = None,
) -> AnyOfResult[T, R]:
    """Build an evaluator that runs ``steps`` one by one and stops at the first hit.

    A hit is a truthy result, or whatever ``how`` accepts when given. The
    evaluator returns ``(step name, result)`` for the hit and None when every
    step passes. Checks never run concurrently and their exceptions propagate
    to the caller.
    """
    ordered = list(steps)

    async def evaluate(to_check: T) -> Optional[tuple[str, R]]:
        for name, check in ordered:
            res = await check(to_check)
            if how is None:
                if res:
                    return name, res
            elif how(res):
                return name, res
        return None

    return evaluate
