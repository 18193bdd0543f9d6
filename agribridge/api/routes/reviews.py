"""
Product review routes
"""
from fastapi import APIRouter, Depends, status

from agribridge.api.deps import get_current_identity, get_review_service
from agribridge.schemas.identity import Identity
from agribridge.schemas.review import ReviewCreate, ReviewNode, ReviewTreeResponse
from agribridge.services.review_service import ReviewService
from agribridge.services.review_tree import average_rating, top_level_reviews

router = APIRouter()


@router.get("/{product_id}/reviews", response_model=ReviewTreeResponse)
async def get_reviews(
    product_id: str,
    service: ReviewService = Depends(get_review_service),
):
    """Review threads for a product, newest first"""
    tree = await service.fetch_tree(product_id)
    return ReviewTreeResponse(
        product_id=product_id,
        average_rating=average_rating(tree),
        review_count=len(top_level_reviews(tree)),
        reviews=tree,
    )


@router.post("/{product_id}/reviews", response_model=ReviewNode, status_code=status.HTTP_201_CREATED)
async def post_review(
    product_id: str,
    review: ReviewCreate,
    identity: Identity = Depends(get_current_identity),
    service: ReviewService = Depends(get_review_service),
):
    """Post a review, or a reply when parent_id is set.

    Returns the created node; the client inserts it locally and refreshes.
    """
    return await service.submit(
        identity,
        product_id,
        review.comment,
        rating=review.rating,
        parent_id=review.parent_id,
        image_url=review.image_url,
    )
