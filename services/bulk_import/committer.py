"""
Committer: writes operator-approved records to the store.

Records are processed strictly in order, one at a time, each with the
ResolvedContext captured during validation. A failed write is logged,
counted as skipped and the run continues. ``on_progress`` is called after
every record; an exception raised by it aborts the run and propagates
with the partial CommitResult attached as ``commit_result``.
"""

import time
import uuid
from typing import Callable, Optional, Sequence, Union

from services.core.log_config import get_logger, import_context, log_processing_batch

from .models import CommitProgress, CommitResult, MergeCandidate, RowOutcome, ValidRecord
from .report import to_csv
from .rules import get_rules

logger = get_logger(__name__)

ApprovedRecord = Union[ValidRecord, MergeCandidate]
ProgressCallback = Callable[[CommitProgress], None]


def commit(
    records: Sequence[ApprovedRecord],
    domain: str,
    store,
    on_progress: Optional[ProgressCallback] = None,
    session_id: Optional[str] = None,
) -> CommitResult:
    """
    Commit approved records.

    Args:
        records: Approved ValidRecord / MergeCandidate entries, in order
        domain: Import domain the records were validated for
        store: ImportStore performing the writes
        on_progress: Called with a CommitProgress after every record
        session_id: Identifier bound to log events (generated if omitted)

    Returns:
        CommitResult with final counts and the per-row result CSV

    Raises:
        UnknownDomainError: If domain is not supported
        Exception: Whatever on_progress raises, carrying the partial
            CommitResult (outcomes and result_csv so far) as ``commit_result``
    """
    rules = get_rules(domain)
    session_id = session_id or uuid.uuid4().hex[:12]
    organization_id = records[0].context.organization_id if records else None

    result = CommitResult()
    started = time.monotonic()

    with import_context(session_id=session_id, organization_id=organization_id, domain=rules.domain):
        logger.info("Commit started", records=len(records))

        for record in records:
            candidate = record.candidate
            outcome = RowOutcome(
                row_index=candidate.row_index,
                disposition="skipped",
                phone=record.context.normalized_phone,
                source_line=candidate.source_line,
            )

            try:
                disposition, ref = rules.persist(record, store)
            except Exception as e:
                outcome.error = str(e) or type(e).__name__
                result.skipped += 1
                logger.warning(
                    "Row failed to commit",
                    row=candidate.row_number,
                    error=outcome.error,
                    error_type=type(e).__name__,
                )
            else:
                outcome.disposition = disposition
                outcome.record_id = ref.id
                if disposition == "merged":
                    result.merged += 1
                else:
                    result.added += 1

            result.outcomes.append(outcome)

            if on_progress is not None:
                try:
                    on_progress(CommitProgress(
                        processed=result.processed,
                        added=result.added,
                        skipped=result.skipped,
                        merged=result.merged,
                    ))
                except Exception as e:
                    result.result_csv = to_csv(result.outcomes)
                    e.commit_result = result
                    logger.error(
                        "Commit aborted by progress callback",
                        processed=result.processed,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise

        result.result_csv = to_csv(result.outcomes)

        log_processing_batch(
            logger,
            batch_id=session_id,
            items_processed=result.added + result.merged,
            items_failed=result.skipped,
            duration_ms=(time.monotonic() - started) * 1000,
            added=result.added,
            merged=result.merged,
        )

    return result
