import pytest

from serialterm.history import NOT_BROWSING, CommandHistory


def _history(*commands: str) -> CommandHistory:
    history = CommandHistory()
    for command in commands:
        history.record(command)
    return history


def test_previous_walks_from_newest_to_oldest() -> None:
    history = _history("a", "b", "c")

    assert history.previous() == "c"
    assert history.previous() == "b"
    assert history.previous() == "a"
    assert history.current == "a"


def test_previous_past_oldest_returns_none_and_keeps_position() -> None:
    history = _history("a", "b")

    results = [history.previous() for _ in range(3)]

    assert results == ["b", "a", None]
    assert history.cursor == 0
    assert history.next() == "b"


def test_next_past_newest_stops_browsing() -> None:
    history = _history("a", "b")
    history.previous()
    history.previous()

    assert history.next() == "b"
    assert history.next() is None
    assert history.cursor == NOT_BROWSING
    assert history.current == ""


def test_navigation_on_empty_history_returns_none() -> None:
    history = CommandHistory()

    assert history.previous() is None
    assert history.next() is None
    assert history.cursor == NOT_BROWSING


def test_record_ignores_empty_commands_and_resets_cursor() -> None:
    history = _history("a", "b")
    history.previous()

    history.record("")

    assert history.entries == ("a", "b")
    assert history.cursor == NOT_BROWSING
    assert len(history) == 2


def test_repeated_commands_are_all_kept() -> None:
    history = _history("ping", "ping")

    assert history.entries == ("ping", "ping")


def test_current_is_empty_after_stepping_past_oldest() -> None:
    history = _history("a", "b")
    history.previous()
    history.previous()

    assert history.previous() is None
    assert history.current == ""
    assert history.next() == "b"
    assert history.current == "b"


def test_history_does_not_share_caller_storage() -> None:
    first = CommandHistory()
    second = CommandHistory()

    first.record("only-here")

    assert second.entries == ()
    with pytest.raises(TypeError):
        CommandHistory(["injected"])
