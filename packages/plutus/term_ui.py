"""Tiny terminal UI helpers (prompt_toolkit-based).

Small, focused prompts for the interactive reconcile flow, kept apart from
the workflow so they can be tested in isolation with a pipe input.

Every prompt accepts an optional ``session``; only its ``input``/``output``
are reused, so tests can pass ``PromptSession(input=pipe,
output=DummyOutput())``. Esc or Ctrl+C cancels and returns ``None``.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import ValidationError, Validator


def _cancel_bindings() -> KeyBindings:
    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    # Provide an unambiguous cancel shortcut as well.
    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    return kb


def _make_session(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


# ----------------------------------------------------------------------------
# Numbered option picker
# ----------------------------------------------------------------------------


def _match_option(text: str, labels: Sequence[str]) -> int | None:
    """Resolve ``text`` to an option index (1-based number or exact label)."""
    value = text.strip()
    if not value:
        return None
    if value.isdigit():
        n = int(value)
        return n - 1 if 1 <= n <= len(labels) else None
    lowered = value.casefold()
    for i, label in enumerate(labels):
        if label.casefold() == lowered:
            return i
    return None


class _OptionValidator(Validator):
    def __init__(self, labels: Sequence[str], disabled: Collection[int], disabled_reason: str) -> None:
        self._labels = labels
        self._disabled = disabled
        self._disabled_reason = disabled_reason

    def validate(self, document) -> None:
        idx = _match_option(document.text, self._labels)
        if idx is None:
            raise ValidationError(
                message=f"Enter a number between 1 and {len(self._labels)} or an option name."
            )
        if idx in self._disabled:
            raise ValidationError(message=self._disabled_reason)


def select_option(
    labels: Sequence[str],
    *,
    message: str = "Choose (number or name, Esc to cancel): ",
    disabled: Collection[int] = (),
    disabled_reason: str = "That option is not available.",
    default: str = "",
    session: PromptSession | None = None,
) -> int | None:
    """Prompt for one of ``labels`` and return its index.

    Options are typed as their 1-based number or their label (case
    insensitive, Tab completes labels). Indices in ``disabled`` are rejected
    inline with ``disabled_reason`` and can never be returned. Returns
    ``None`` when canceled or when there is nothing to choose from.
    """

    if not labels:
        return None

    kb = _cancel_bindings()
    completer = WordCompleter(list(labels), ignore_case=True, match_middle=True, sentence=True)
    sess = _make_session(session, kb)

    result = sess.prompt(
        message,
        default=default,
        completer=completer,
        validator=_OptionValidator(labels, set(disabled), disabled_reason),
        validate_while_typing=False,
        key_bindings=kb,
    )
    if result is None:
        return None
    return _match_option(result, labels)


# ----------------------------------------------------------------------------
# Token and confirmation prompts
# ----------------------------------------------------------------------------


class _NonEmpty(Validator):
    def validate(self, document) -> None:
        if not document.text.strip():
            raise ValidationError(message="An access token is required.")


def prompt_access_token(
    *,
    session: PromptSession | None = None,
    message: str = "Starling API access token (input hidden, Esc to cancel): ",
) -> str | None:
    """Collect the bearer token without echoing it. ``None`` when canceled."""

    kb = _cancel_bindings()
    sess = _make_session(session, kb)
    value = sess.prompt(
        message,
        is_password=True,
        validator=_NonEmpty(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    return value.strip() if isinstance(value, str) else None


_YES = {"y", "yes"}
_NO = {"n", "no"}


class _YesNo(Validator):
    def validate(self, document) -> None:
        v = document.text.strip().lower()
        if v and v not in _YES | _NO:
            raise ValidationError(message="Answer y or n.")


def confirm(
    message: str,
    *,
    default: bool = False,
    session: PromptSession | None = None,
) -> bool:
    """Ask a yes/no question; Enter takes ``default``, cancel means no."""

    kb = _cancel_bindings()
    sess = _make_session(session, kb)
    suffix = " [Y/n]: " if default else " [y/N]: "
    value = sess.prompt(
        message + suffix,
        validator=_YesNo(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    if value is None:
        return False
    v = value.strip().lower()
    if not v:
        return default
    return v in _YES


__all__ = ["select_option", "prompt_access_token", "confirm"]
