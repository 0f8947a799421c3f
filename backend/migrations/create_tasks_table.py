"""create_tasks_table

Creates the DynamoDB tasks table keyed by (owner_id, task_id), with an
optional (owner_id, status) index for pending-task queries.

Usage: python -m migrations.create_tasks_table [upgrade|downgrade]
"""
import logging
import sys

from botocore.exceptions import ClientError

from common.config import Settings, configure_logging
from common.repository import build_dynamodb_client, table_definition

logger = logging.getLogger("migrations")


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def upgrade(client, settings: Settings) -> bool:
    """Returns True when the table was created, False when it already existed."""
    definition = table_definition(settings.TASKS_TABLE, settings.TASKS_STATUS_INDEX)
    try:
        client.create_table(**definition)
    except ClientError as exc:
        if _error_code(exc) == "ResourceInUseException":
            logger.info("Table %s already exists", settings.TASKS_TABLE)
            return False
        raise
    client.get_waiter("table_exists").wait(TableName=settings.TASKS_TABLE)
    logger.info("Created table %s", settings.TASKS_TABLE)
    return True


def downgrade(client, settings: Settings) -> bool:
    try:
        client.delete_table(TableName=settings.TASKS_TABLE)
    except ClientError as exc:
        if _error_code(exc) == "ResourceNotFoundException":
            logger.info("Table %s does not exist", settings.TASKS_TABLE)
            return False
        raise
    client.get_waiter("table_not_exists").wait(TableName=settings.TASKS_TABLE)
    logger.info("Deleted table %s", settings.TASKS_TABLE)
    return True


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    action = args[0] if args else "upgrade"
    if action not in {"upgrade", "downgrade"}:
        print(f"Unknown action {action!r}; expected upgrade or downgrade", file=sys.stderr)
        return 2
    settings = Settings()
    configure_logging(settings)
    client = build_dynamodb_client(settings)
    if action == "upgrade":
        upgrade(client, settings)
    else:
        downgrade(client, settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
