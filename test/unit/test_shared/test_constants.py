"""
Tests for shared constants.
"""

from tictactoe.shared import constants


def test_network_defaults():
    assert isinstance(constants.DEFAULT_PORT, int)
    assert constants.MAX_CLIENTS > 0


def test_rating_rules():
    assert constants.INITIAL_RATING == 1200
    assert constants.WIN_RATING_DELTA == 15
    assert constants.LOSS_RATING_DELTA == -10
    assert constants.DISCONNECT_WIN_RATING_DELTA == 10
    assert constants.DISCONNECT_LOSS_RATING_DELTA == -15


def test_empty_board_cell_is_space():
    assert constants.EMPTY_CELL == " "
    assert constants.BOARD_SIZE == 9
