from typing import Optional, Union

from badcompany.schemas.newsletter import CamelModel


class ContactRequest(CamelModel):
    # The site form posts Portuguese field names
    nome: Optional[str] = None
    email: Optional[str] = None
    mensagem: Optional[str] = None


class ContactResponse(CamelModel):
    message: str


class BudgetRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    event_type: Optional[str] = None
    date: Optional[str] = None
    guest_count: Optional[Union[int, str]] = None
    details: Optional[str] = None


class BudgetResponse(CamelModel):
    success: bool
