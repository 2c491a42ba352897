"""
Admin Notification Service
Writes in-app notifications for business admins. Notifications are a side
channel: a failure here is logged and never fails the request that caused it.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import AdminNotification

logger = logging.getLogger(__name__)


def create_admin_notification(
    db: Session,
    business_id: str,
    title: str,
    message: Optional[str] = None,
    notification_type: str = "info",
    link: Optional[str] = None,
) -> Optional[AdminNotification]:
    """
    Create an admin notification for a business

    Args:
        db: Database session
        business_id: Business the notification belongs to
        title: Short title shown in the notification list
        message: Optional body text
        notification_type: info, booking, warning
        link: Optional admin dashboard link

    Returns:
        The notification, or None if it could not be written
    """
    try:
        notification = AdminNotification(
            business_id=business_id,
            title=title,
            message=message,
            type=notification_type,
            link=link,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info(f"🔔 Admin notification created for business {business_id}: {title}")
        return notification
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to create admin notification for business {business_id}: {e}")
        return None
