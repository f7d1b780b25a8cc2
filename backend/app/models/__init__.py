# Models module
from app.models.profile import Profile
from app.models.client import Client
from app.models.grootboek import GrootboekAccount, BtwCode, AccountType, BtwCodeType
from app.models.boeking import Boekingsregel
from app.models.btw_aangifte import BtwAangifte, PeriodeType, AangifteStatus, RUBRIEK_FIELDS
from app.models.upload import UploadLog, UploadFileType, UploadStatus, ColumnMapping

__all__ = [
    "Profile",
    "Client",
    "GrootboekAccount",
    "BtwCode",
    "AccountType",
    "BtwCodeType",
    "Boekingsregel",
    "BtwAangifte",
    "PeriodeType",
    "AangifteStatus",
    "RUBRIEK_FIELDS",
    "UploadLog",
    "UploadFileType",
    "UploadStatus",
    "ColumnMapping",
]
