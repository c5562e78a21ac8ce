"""Create the PhotoFlow DynamoDB tables (and optionally the SQS queue).

Usage:
    python scripts/create_tables.py --endpoint-url http://localhost:4566 --suffix -dev
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3

from photoflow.persistence.dynamodb_backend import TABLE_DEFINITIONS, ensure_tables


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create both tables. Skips tables that already exist."""
    created = ensure_tables(ddb, suffix=suffix)
    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in created:
            print(f"  Created table {table_name}")
        else:
            print(f"  Table {table_name} already exists, skipping")


def create_queue(sqs: Any, name: str, visibility_timeout: int = 60) -> str:
    """Create the job queue (idempotent) and return its URL."""
    attributes = {"VisibilityTimeout": str(visibility_timeout)}
    if name.endswith(".fifo"):
        attributes["FifoQueue"] = "true"
    url = sqs.create_queue(QueueName=name, Attributes=attributes)["QueueUrl"]
    print(f"  Queue {name}: {url}")
    return url


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--endpoint-url", default=None, help="LocalStack endpoint")
    parser.add_argument("--region", default="us-east-1")
    parser.add_argument("--suffix", default="", help="Table name suffix, e.g. -dev")
    parser.add_argument("--queue-name", default=None, help="Also create this SQS queue")
    args = parser.parse_args()

    kwargs: dict = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    print("Creating tables...")
    create_tables(boto3.resource("dynamodb", **kwargs), suffix=args.suffix)
    if args.queue_name:
        print("Creating queue...")
        create_queue(boto3.client("sqs", **kwargs), args.queue_name)
    print("Done.")


if __name__ == "__main__":
    main()
