import contextlib

from plutus.term_ui import confirm, prompt_access_token, select_option

# Compatibility import across prompt_toolkit versions
try:  # pragma: no cover - fallback path depends on library version
    from prompt_toolkit.input import create_pipe_input
except ImportError:  # pragma: no cover
    from prompt_toolkit.input.defaults import create_pipe_input

from prompt_toolkit import PromptSession
from prompt_toolkit.output import DummyOutput

LABELS = ["Holiday (balance: GBP 50.00)", "Rainy day (balance: GBP 5.00) - insufficient funds", "Back"]


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_select_option_by_number():
    with pipe_session() as (pipe, sess):
        pipe.send_text("3\r")
        assert select_option(LABELS, session=sess) == 2


def test_select_option_by_label_is_case_insensitive():
    with pipe_session() as (pipe, sess):
        pipe.send_text("back\r")
        assert select_option(LABELS, session=sess) == 2


def test_disabled_option_is_rejected_until_a_valid_choice_is_made():
    # "2" fails validation and stays in the buffer; clear it and pick 1.
    with pipe_session() as (pipe, sess):
        pipe.send_text("2\r")
        pipe.send_text("\x01\x0b1\r")
        assert select_option(LABELS, disabled={1}, session=sess) == 0


def test_out_of_range_number_is_rejected():
    with pipe_session() as (pipe, sess):
        pipe.send_text("9\r")
        pipe.send_text("\x01\x0b1\r")
        assert select_option(LABELS, session=sess) == 0


def test_ctrl_c_cancels_selection():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x03")
        assert select_option(LABELS, session=sess) is None


def test_empty_option_list_returns_none_without_prompting():
    assert select_option([]) is None


def test_confirm_answers():
    with pipe_session() as (pipe, sess):
        pipe.send_text("y\r")
        assert confirm("Withdraw?", session=sess) is True
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert confirm("Withdraw?", session=sess) is False
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert confirm("Retry?", default=True, session=sess) is True


def test_prompt_access_token_strips_input():
    with pipe_session() as (pipe, sess):
        pipe.send_text("  abc123  \r")
        assert prompt_access_token(session=sess) == "abc123"
