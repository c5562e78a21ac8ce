"""SQS job queue implementing IJobQueue."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from photoflow.core.exceptions import QueueUnavailable
from photoflow.models.photo import format_timestamp
from photoflow.models.queue import Delivery, Job

MAX_WAIT_SECONDS = 20  # SQS long-poll ceiling


class SQSJobQueue:
    """Production IJobQueue backed by SQS.

    Standard queues give at-least-once delivery. A ``.fifo`` queue URL also
    gets per-photo ordering via ``MessageGroupId``.
    """

    def __init__(self, queue_url: str, region: str = "us-east-1",
                 endpoint_url: str | None = None, visibility_timeout: int = 60) -> None:
        self._queue_url = queue_url
        self._visibility_timeout = visibility_timeout
        self._fifo = queue_url.endswith(".fifo")
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("sqs", **kwargs)

    def enqueue(self, job: Job) -> None:
        kwargs: dict = {
            "QueueUrl": self._queue_url,
            "MessageBody": job.model_dump_json(by_alias=True),
        }
        if self._fifo:
            kwargs["MessageGroupId"] = job.photo_id
            kwargs["MessageDeduplicationId"] = (
                f"{job.photo_id}:{format_timestamp(job.enqueued_at)}"
            )
        try:
            self._client.send_message(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise QueueUnavailable(f"SQS send failed for photo {job.photo_id!r}: {exc}") from exc

    def dequeue(self, wait_seconds: float = 0.0) -> Delivery | None:
        try:
            resp = self._client.receive_message(
                QueueUrl=self._queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=min(MAX_WAIT_SECONDS, max(0, int(wait_seconds))),
                VisibilityTimeout=self._visibility_timeout,
                AttributeNames=["ApproximateReceiveCount"],
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueUnavailable(f"SQS receive failed: {exc}") from exc
        messages = resp.get("Messages", [])
        if not messages:
            return None
        message = messages[0]
        attempts = int(message.get("Attributes", {}).get("ApproximateReceiveCount", 1))
        return Delivery(
            job=Job.model_validate_json(message["Body"]),
            receipt=message["ReceiptHandle"],
            attempts=attempts,
        )

    def ack(self, delivery: Delivery) -> None:
        try:
            self._client.delete_message(QueueUrl=self._queue_url, ReceiptHandle=delivery.receipt)
        except (BotoCoreError, ClientError) as exc:
            raise QueueUnavailable(
                f"SQS delete failed for photo {delivery.job.photo_id!r}: {exc}"
            ) from exc

    def release(self, delivery: Delivery, delay_seconds: float = 0.0) -> None:
        try:
            self._client.change_message_visibility(
                QueueUrl=self._queue_url,
                ReceiptHandle=delivery.receipt,
                VisibilityTimeout=max(0, int(delay_seconds)),
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueUnavailable(
                f"SQS visibility change failed for photo {delivery.job.photo_id!r}: {exc}"
            ) from exc

    def pending_count(self) -> int:
        try:
            attrs = self._client.get_queue_attributes(
                QueueUrl=self._queue_url,
                AttributeNames=[
                    "ApproximateNumberOfMessages",
                    "ApproximateNumberOfMessagesNotVisible",
                ],
            )["Attributes"]
        except (BotoCoreError, ClientError) as exc:
            raise QueueUnavailable(f"SQS attribute query failed: {exc}") from exc
        return int(attrs.get("ApproximateNumberOfMessages", 0)) + int(
            attrs.get("ApproximateNumberOfMessagesNotVisible", 0)
        )

    def ping(self) -> bool:
        try:
            self._client.get_queue_attributes(QueueUrl=self._queue_url, AttributeNames=["QueueArn"])
            return True
        except (BotoCoreError, ClientError):
            return False
