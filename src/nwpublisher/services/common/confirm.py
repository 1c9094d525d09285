"""Operator confirmation before destructive or publishing work.

No plan is executed unless a
[ConfirmationGate][nwpublisher.services.common.confirm.ConfirmationGate]
approves it. The interactive gate requires the operator to type an exact
phrase (``SYNC`` or ``DELETE``). There is no way to skip it: a run that
must not prompt uses dry-run mode, which only displays the plan.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable


SYNC_PHRASE = "SYNC"
DELETE_PHRASE = "DELETE"


@runtime_checkable
class ConfirmationGate(Protocol):
    def confirm(self, message: str, phrase: str) -> bool:
        """Return ``True`` only if the operator approved *message*."""
        ...


class TypedPhraseGate:
    """Prompt on the terminal and approve only on an exact phrase match.

    Leading and trailing whitespace is ignored; case is not. End of input
    counts as a refusal.
    """

    def __init__(self, input_fn: Callable[[str], str] = input) -> None:
        self._input = input_fn

    def confirm(self, message: str, phrase: str) -> bool:
        try:
            answer = self._input(f"{message}\nType {phrase} to continue: ")
        except EOFError:
            return False
        return answer.strip() == phrase
