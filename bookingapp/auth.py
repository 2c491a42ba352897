"""
Tenant scoping for request handlers.

Identity is established upstream by the hosted auth provider; by the time a
request reaches this service it carries the business (and, for provider
endpoints, the provider) it acts for. These dependencies turn those headers
into rows and reject requests that point outside an existing tenant.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import Business, ServiceProvider

logger = logging.getLogger(__name__)


async def get_current_business(
    x_business_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Business:
    """Resolve the X-Business-Id header to a business"""
    if not x_business_id:
        logger.warning("⚠️ Request without X-Business-Id header")
        raise HTTPException(status_code=401, detail="Missing business context")

    business = db.query(Business).filter(Business.id == x_business_id).first()
    if not business:
        logger.warning(f"⚠️ Unknown business id: {x_business_id}")
        raise HTTPException(status_code=404, detail="Business not found")

    return business


async def get_current_provider(
    x_provider_id: Optional[str] = Header(None),
    business: Business = Depends(get_current_business),
    db: Session = Depends(get_db),
) -> ServiceProvider:
    """Resolve the X-Provider-Id header to an active provider of the current business"""
    if not x_provider_id:
        raise HTTPException(status_code=401, detail="Missing provider context")

    provider = (
        db.query(ServiceProvider)
        .filter(
            ServiceProvider.id == x_provider_id,
            ServiceProvider.business_id == business.id,
        )
        .first()
    )
    if not provider or provider.status != "active":
        logger.warning(f"⚠️ Provider {x_provider_id} not active in business {business.id}")
        raise HTTPException(status_code=403, detail="Provider not authorized for this business")

    return provider
