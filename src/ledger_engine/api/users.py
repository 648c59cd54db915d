import logging
from typing import Any, Callable, Dict, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ledger_engine.config import get_settings
from ledger_engine.core.errors import InvalidNumericInput, MissingArgument, PersistenceError
from ledger_engine.core.record import UserRecord
from ledger_engine.persistence.memory import InMemoryGateway
from ledger_engine.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users")

_gateway = InMemoryGateway()
_user_service = UserService(gateway=_gateway)


def get_user_service() -> UserService:
    return _user_service


class AmountRequest(BaseModel):
    amount: Union[int, str, None] = None


def _apply(record: UserRecord, mutate: Callable[[UserRecord], Any]) -> None:
    try:
        mutate(record)
    except (MissingArgument, InvalidNumericInput) as exc:
        logger.info("user mutation rejected", extra={"user_id": record.id})
        raise HTTPException(status_code=422, detail=str(exc)) from exc


async def _save(record: UserRecord) -> Dict[str, Any]:
    fields = ",".join(record.changes.fields) or "-"
    try:
        saved = await record.save()
    except PersistenceError as exc:
        logger.exception("user save failed", extra={"user_id": record.id, "fields": fields})
        raise HTTPException(status_code=503, detail="storage unavailable") from exc
    logger.info("user saved", extra={"user_id": record.id, "fields": fields})
    return saved.to_plain()


@router.get("/{user_id}")
async def get_user(user_id: str, service: UserService = Depends(get_user_service)) -> Dict[str, Any]:
    record = await service.get(user_id)
    return record.to_plain()


@router.post("/{user_id}/deposit")
async def deposit(
    user_id: str, body: AmountRequest, service: UserService = Depends(get_user_service)
) -> Dict[str, Any]:
    record = await service.get(user_id)
    _apply(record, lambda r: r.add_to_bank(body.amount))
    return await _save(record)


@router.post("/{user_id}/withdraw")
async def withdraw(
    user_id: str, body: AmountRequest, service: UserService = Depends(get_user_service)
) -> Dict[str, Any]:
    record = await service.get(user_id)
    _apply(record, lambda r: r.remove_from_bank(body.amount))
    return await _save(record)


@router.post("/{user_id}/daily")
async def daily(user_id: str, service: UserService = Depends(get_user_service)) -> Dict[str, Any]:
    reward = get_settings().daily_reward
    record = await service.get(user_id)
    _apply(record, lambda r: r.update_streak().add_to_pocket(reward))
    return await _save(record)


@router.post("/{user_id}/commands/{name}")
async def command_ran(user_id: str, name: str, service: UserService = Depends(get_user_service)) -> Dict[str, Any]:
    record = await service.get(user_id)
    _apply(record, lambda r: r.increment_command_count().set_last_command(name))
    return await _save(record)
