from src.modules.moderation.enums import ScanStatus
from src.modules.moderation.schemas import ScanResult
from src.modules.moderation.services import aggregate

ALLOW = ScanResult(status=ScanStatus.ALLOW, reason="clean", score=0.1)
BLOCK = ScanResult(status=ScanStatus.BLOCK, reason="hate_speech", score=0.9)
ERROR = ScanResult(status=ScanStatus.ERROR, reason="network_error")
RATE_LIMITED = ScanResult(status=ScanStatus.RATE_LIMITED, reason="rate_limited")


def test_block_wins_over_errors():
    assert aggregate([ALLOW, BLOCK, ERROR]) == BLOCK
    assert aggregate([ERROR, BLOCK]) == BLOCK


def test_first_block_wins():
    other_block = ScanResult(status=ScanStatus.BLOCK, reason="spam")

    assert aggregate([BLOCK, other_block]) == BLOCK


def test_last_transient_wins():
    assert aggregate([ALLOW, ERROR, RATE_LIMITED]) == RATE_LIMITED
    assert aggregate([RATE_LIMITED, ERROR, ALLOW]) == ERROR


def test_all_allow_is_a_plain_allow():
    result = aggregate([ALLOW, ALLOW])

    assert result.status == ScanStatus.ALLOW
    assert result.reason == ""
    assert result.score is None


def test_missing_entries_are_skipped():
    assert aggregate([None, None]).status == ScanStatus.ALLOW
    assert aggregate([None, BLOCK]) == BLOCK
    assert aggregate([]).status == ScanStatus.ALLOW


def test_single_result_is_returned_unchanged():
    assert aggregate([BLOCK]) is BLOCK
