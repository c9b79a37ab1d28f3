from __future__ import annotations

import time
from typing import Any

from ..infrastructure.aws_clients import sqs_client
from ..modules.bids.upload_events import confirm_submissions, extract_records
from ..observability.logging import configure_logging, get_logger
from ..settings import settings

log = get_logger("upload_events_worker")


def _queue_url() -> str:
    q = str(settings.upload_events_queue_url or "").strip()
    if not q:
        raise RuntimeError("UPLOAD_EVENTS_QUEUE_URL is not set")
    return q


def _receive_count(msg: dict[str, Any]) -> int:
    try:
        attrs = msg.get("Attributes") or {}
        return int(attrs.get("ApproximateReceiveCount") or 0)
    except (TypeError, ValueError):
        return 0


def handle_message(msg: dict[str, Any]) -> bool:
    """
    Process one SQS message. Returns True when it should be deleted.

    A message is kept for redelivery only when some record hit a transient
    failure and the receive budget is not exhausted. Malformed bodies are
    dropped: they will never parse.
    """
    message_id = msg.get("MessageId")
    try:
        records = extract_records(msg.get("Body"))
    except ValueError as e:
        log.warning("upload_event_message_dropped", message_id=message_id, error=str(e))
        return True

    result = confirm_submissions(records)
    log.info(
        "upload_event_message_processed",
        message_id=message_id,
        records=len(records),
        confirmed=result.confirmed,
        duplicates=result.duplicates,
        skipped=result.skipped,
        failed=result.failed,
    )
    if result.ok:
        return True

    rc = _receive_count(msg)
    max_recv = max(1, int(settings.upload_events_max_receives or 5))
    if rc >= max_recv:
        log.error(
            "upload_event_message_abandoned",
            message_id=message_id,
            receive_count=rc,
            errors=result.errors[:5],
        )
        return True
    # Already-confirmed records in this message are no-ops on redelivery.
    return False


def run_forever() -> None:
    configure_logging(level="INFO")
    qurl = _queue_url()
    sqs = sqs_client()
    wait_s = max(1, min(20, int(settings.upload_events_poll_wait_seconds or 10)))
    max_msgs = max(1, min(10, int(settings.upload_events_poll_max_messages or 5)))

    log.info(
        "upload_events_worker_starting",
        queue_url=qurl,
        wait_seconds=wait_s,
        max_messages=max_msgs,
    )

    while True:
        try:
            resp = sqs.receive_message(
                QueueUrl=qurl,
                MaxNumberOfMessages=max_msgs,
                WaitTimeSeconds=wait_s,
                AttributeNames=["ApproximateReceiveCount"],
            )
            for m in resp.get("Messages") or []:
                receipt = m.get("ReceiptHandle")
                if handle_message(m) and receipt:
                    sqs.delete_message(QueueUrl=qurl, ReceiptHandle=receipt)
        except Exception:
            # Prevent tight crash loops.
            log.exception("upload_events_worker_loop_error")
            time.sleep(2.0)


if __name__ == "__main__":
    run_forever()
