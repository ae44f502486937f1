from typing import Optional

from badcompany.schemas.newsletter import CamelModel


class VisitorRequest(CamelModel):
    visitor_id: Optional[str] = None
    user_agent: Optional[str] = None


class VisitorResponse(CamelModel):
    success: bool
    visitor_id: str


class CountResponse(CamelModel):
    count: int
