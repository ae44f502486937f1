from fastapi import APIRouter, Depends

from badcompany.database import SessionFactory, get_session_factory
from badcompany.schemas.visitor import CountResponse, VisitorRequest, VisitorResponse
from badcompany.services.visitor_service import VisitorService

router = APIRouter(prefix="/visitors", tags=["visitors"])


@router.post("", response_model=VisitorResponse)
async def record_visit(data: VisitorRequest, session_factory: SessionFactory = Depends(get_session_factory)):
    visitor_id = await VisitorService(session_factory).record_visit(data.visitor_id, data.user_agent)
    return VisitorResponse(success=True, visitor_id=visitor_id)


@router.get("/count", response_model=CountResponse)
async def visit_count(session_factory: SessionFactory = Depends(get_session_factory)):
    """Total page visits across all visitors."""
    return CountResponse(count=await VisitorService(session_factory).total_visits())


@router.get("/devices", response_model=CountResponse)
async def device_count(session_factory: SessionFactory = Depends(get_session_factory)):
    """Distinct browsers/devices seen."""
    return CountResponse(count=await VisitorService(session_factory).unique_devices())
