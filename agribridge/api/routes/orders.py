"""
Order routes
"""
from fastapi import APIRouter, Depends, HTTPException, status

from agribridge.api.deps import get_current_identity, get_order_tracker
from agribridge.schemas.identity import Identity
from agribridge.schemas.order import OrderTrackingResponse
from agribridge.services.order_tracking import OrderTracker

router = APIRouter()


@router.get("/{order_id}/tracking", response_model=OrderTrackingResponse)
async def get_order_tracking(
    order_id: str,
    identity: Identity = Depends(get_current_identity),
    tracker: OrderTracker = Depends(get_order_tracker),
):
    """Order with its status history, newest first"""
    tracking = await tracker.load(order_id)
    if str(tracking.order.user_id) != str(identity.user_id) and identity.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return tracking
