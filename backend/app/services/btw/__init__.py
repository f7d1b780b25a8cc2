# BTW services module
from app.services.btw.aangifte import BtwAangifteService, calculate_btw
from app.services.btw.pdf import generate_aangifte_pdf

__all__ = [
    "BtwAangifteService",
    "calculate_btw",
    "generate_aangifte_pdf",
]
