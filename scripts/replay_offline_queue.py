"""
Replay an offline incident queue against a running server.

Each JSONL line is one queued action. A plain report object (optionally
carrying ``idempotencyKey``) is a creation; a line with
``"kind": "update_status"`` carries ``status`` and either ``incidentId`` or
``dependsOn`` (the idempotency key of a creation queued earlier).

Usage: python scripts/replay_offline_queue.py queue.jsonl --base-url http://localhost:8000/api
"""
import argparse
import json
import logging
import sys
import time
from pathlib import Path

from gombesafe.core.config import get_settings
from gombesafe.core.errors import ValidationError
from gombesafe.db.session import make_session_factory
from gombesafe.services.sync import (
    ActionKind,
    HttpTransport,
    SyncAction,
    SyncCoordinator,
    SyncState,
)
from gombesafe.services.sync.repository import SyncQueueRepository


def load_actions(jsonl_file_path: str) -> tuple:
    """
    Parse queued actions from a JSONL file.

    Unreadable lines are reported and skipped, never fatal.

    Returns:
        ((line number, SyncAction) pairs, error messages); blank lines are skipped
    """
    actions = []
    errors = []
    with open(jsonl_file_path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as e:
                errors.append(f"Line {line_num}: JSON parse error: {str(e)}")
                continue
            if not isinstance(item, dict):
                errors.append(f"Line {line_num}: expected a JSON object")
                continue
            try:
                kind = ActionKind(item.pop("kind", ActionKind.CREATE_INCIDENT.value))
            except ValueError as e:
                errors.append(f"Line {line_num}: {str(e)}")
                continue
            key = item.pop("idempotencyKey", None)
            depends_on = item.pop("dependsOn", None)
            actions.append(
                (line_num, SyncAction(kind, item, idempotency_key=key, depends_on=depends_on))
            )
    return actions, errors


def replay_file(
    jsonl_file_path: str,
    base_url: str,
    queue_url: str,
    max_rounds: int,
) -> dict:
    settings = get_settings()
    file_path = Path(jsonl_file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {jsonl_file_path}")

    coordinator = SyncCoordinator(
        HttpTransport(base_url, timeout=settings.sync_request_timeout_seconds),
        repository=SyncQueueRepository(make_session_factory(queue_url)),
        max_attempts=settings.sync_max_attempts,
        backoff_base_seconds=settings.sync_backoff_base_seconds,
        backoff_max_seconds=settings.sync_backoff_max_seconds,
    )

    actions, errors = load_actions(jsonl_file_path)
    stats = {"queued": 0, "invalid": len(errors), "errors": list(errors)}
    for line_num, action in actions:
        try:
            coordinator.enqueue(action)
            stats["queued"] += 1
        except ValidationError as e:
            stats["invalid"] += 1
            stats["errors"].append(f"Line {line_num}: {e}")

    print(f"File: {jsonl_file_path}")
    print(f"Server: {base_url}")
    print("-" * 50)

    for round_num in range(1, max_rounds + 1):
        report = coordinator.replay()
        print(f"Round {round_num}: {report.summary()}")

        pending = coordinator.pending()
        if not pending:
            break
        waits = [a.next_attempt_at for a in pending if a.next_attempt_at is not None]
        if waits and round_num < max_rounds:
            time.sleep(max(0.0, min(waits) - time.time()))

    dead = coordinator.dead_letters()
    stats["acknowledged"] = sum(
        1 for a in coordinator.actions() if a.state == SyncState.ACKNOWLEDGED
    )
    stats["pending"] = len(coordinator.pending())
    stats["dead_lettered"] = len(dead)

    print("-" * 50)
    print(f"Acknowledged: {stats['acknowledged']}")
    print(f"Still pending: {stats['pending']}")
    print(f"Dead-lettered: {stats['dead_lettered']}")
    for action in dead:
        print(f"   - {action.queued_id} ({action.idempotency_key}): {action.last_error}")
    if stats["errors"]:
        print(f"\nRejected lines ({len(stats['errors'])}):")
        for error in stats["errors"][:10]:
            print(f"   - {error}")
    return stats


def main(argv=None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Replay an offline incident queue")
    parser.add_argument("jsonl_file", help="Queued actions, one JSON object per line")
    parser.add_argument(
        "--base-url",
        default=f"http://localhost:8000{settings.api_prefix}",
        help="API root of the running server",
    )
    parser.add_argument(
        "--queue-url",
        default=settings.sync_queue_url,
        help="SQLAlchemy URL of the persistent sync queue",
    )
    parser.add_argument("--rounds", type=int, default=settings.sync_max_attempts)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    stats = replay_file(args.jsonl_file, args.base_url, args.queue_url, args.rounds)
    return 1 if stats["dead_lettered"] or stats["invalid"] else 0


if __name__ == "__main__":
    sys.exit(main())
