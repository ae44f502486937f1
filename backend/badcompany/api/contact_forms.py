import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from badcompany.errors import NewsletterError, error_body
from badcompany.metrics import FORM_SUBMISSIONS
from badcompany.schemas.forms import BudgetRequest, BudgetResponse, ContactRequest, ContactResponse
from badcompany.services.contact_forms import ContactFormService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/contact", response_model=ContactResponse)
async def contact(data: ContactRequest):
    """Public contact form; the message is mailed to the bookings inbox."""
    try:
        sent = await ContactFormService().submit_contact(data)
    except NewsletterError:
        FORM_SUBMISSIONS.labels(form="contact", outcome="rejected").inc()
        raise
    except Exception as e:
        logger.exception(f"Contact form delivery failed: {type(e).__name__}: {e}")
        sent = False

    if not sent:
        FORM_SUBMISSIONS.labels(form="contact", outcome="failed").inc()
        return JSONResponse(status_code=500, content=error_body("Erro interno do servidor"))

    FORM_SUBMISSIONS.labels(form="contact", outcome="sent").inc()
    return ContactResponse(message="Mensagem enviada com sucesso")


@router.post("/budget-request", response_model=BudgetResponse)
async def budget_request(data: BudgetRequest):
    """Public event budget request form."""
    try:
        sent = await ContactFormService().submit_budget_request(data)
    except NewsletterError:
        FORM_SUBMISSIONS.labels(form="budget_request", outcome="rejected").inc()
        raise
    except Exception as e:
        logger.exception(f"Budget request delivery failed: {type(e).__name__}: {e}")
        sent = False

    if not sent:
        FORM_SUBMISSIONS.labels(form="budget_request", outcome="failed").inc()
        return JSONResponse(status_code=500, content=error_body("Falha ao enviar o pedido de orçamento."))

    FORM_SUBMISSIONS.labels(form="budget_request", outcome="sent").inc()
    return BudgetResponse(success=True)
