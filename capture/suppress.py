from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session


SUPPRESS_SETTING = "pgroll.no_inferred_migrations"


def _set_flag(bind: Session | Connection, value: str) -> None:
    bind.execute(text("select set_config(:name, :value, true)"), {"name": SUPPRESS_SETTING, "value": value})


def _aborts_transaction(error: BaseException) -> bool:
    return isinstance(error, sa_exc.DBAPIError) or isinstance(error.__cause__, sa_exc.DBAPIError)


@contextmanager
def suppress_inference(bind: Session | Connection) -> Iterator[None]:
    """Keep DDL issued inside the block out of the inferred-migration history.

    The flag is transaction-local, so other sessions are still captured and an
    aborted transaction clears it on its own.
    """
    _set_flag(bind, "TRUE")
    try:
        yield
    except BaseException as error:
        # a failed statement leaves the transaction unusable until rollback
        if not _aborts_transaction(error):
            _set_flag(bind, "")
        raise
    _set_flag(bind, "")


def inference_suppressed(bind: Session | Connection) -> bool:
    value = bind.execute(
        text("select current_setting(:name, true)"), {"name": SUPPRESS_SETTING}
    ).scalar()
    return value == "TRUE"
