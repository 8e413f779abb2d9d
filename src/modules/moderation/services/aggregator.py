from collections.abc import Iterable

from src.modules.moderation.enums import ScanStatus
from src.modules.moderation.schemas import ScanResult


def aggregate(results: Iterable[ScanResult | None]) -> ScanResult:
    """
    Combine the per-field decisions of one entity into a single verdict.

    - Missing entries (field not scanned) are skipped.
    - The first block wins and short-circuits, even over other fields' errors.
    - Otherwise the last error or rate_limited entry wins.
    - Otherwise the verdict is allow with an empty reason and no score.
    """
    final = ScanResult(status=ScanStatus.ALLOW, reason="", score=None)

    for result in results:
        if result is None:
            continue
        if result.is_blocked:
            return result
        if result.is_transient:
            final = result

    return final
