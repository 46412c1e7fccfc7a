# tutorcal/routes/availability.py
"""
Teacher availability routes.

Teachers manage their own weekly and dated availability rules and read back
their free time, either as ranges or as calendar background events.
"""

import asyncio
from datetime import datetime
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status

from ..api.dependencies import get_availability_service, require_teacher
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    CalendarEventsResponse,
    FreeRangesResponse,
)
from ..services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/rules", response_model=List[AvailabilityRuleResponse])
async def list_rules(
    current_user: User = Depends(require_teacher),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityRuleResponse]:
    try:
        rules = await asyncio.to_thread(service.list_rules, current_user)
        return [AvailabilityRuleResponse.model_validate(rule) for rule in rules]
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/rules", response_model=AvailabilityRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: AvailabilityRuleCreate,
    current_user: User = Depends(require_teacher),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRuleResponse:
    try:
        rule = await asyncio.to_thread(service.create_rule, current_user, payload.model_dump())
        return AvailabilityRuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/rules/{rule_id}", response_model=AvailabilityRuleResponse)
async def update_rule(
    rule_id: str,
    payload: AvailabilityRuleUpdate,
    current_user: User = Depends(require_teacher),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRuleResponse:
    try:
        rule = await asyncio.to_thread(
            service.update_rule, current_user, rule_id, payload.model_dump(exclude_unset=True)
        )
        return AvailabilityRuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: str,
    current_user: User = Depends(require_teacher),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        await asyncio.to_thread(service.delete_rule, current_user, rule_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/free-ranges", response_model=FreeRangesResponse)
async def get_free_ranges(
    start: datetime = Query(..., description="Window start (ISO 8601)"),
    end: datetime = Query(..., description="Window end, exclusive (ISO 8601)"),
    current_user: User = Depends(require_teacher),
    service: AvailabilityService = Depends(get_availability_service),
) -> FreeRangesResponse:
    try:
        ranges = await asyncio.to_thread(service.get_free_ranges, current_user.id, start, end)
        return FreeRangesResponse.model_validate({"ranges": [r.to_dict() for r in ranges]})
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/calendar-events", response_model=CalendarEventsResponse)
async def get_calendar_events(
    start: datetime = Query(...),
    end: datetime = Query(...),
    current_user: User = Depends(require_teacher),
    service: AvailabilityService = Depends(get_availability_service),
) -> CalendarEventsResponse:
    try:
        events = await asyncio.to_thread(service.get_calendar_events, current_user.id, start, end)
        return CalendarEventsResponse.model_validate({"events": [e.to_dict() for e in events]})
    except DomainException as e:
        handle_domain_exception(e)
