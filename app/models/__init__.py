# Visitrack — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.visitor import Visitor   # noqa
from app.models.qr_scan import QRScan    # noqa
