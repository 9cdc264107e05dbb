from fastapi import APIRouter
from . import root
from . import auth
from . import recommendation_rating
from . import recommendation

router = APIRouter()

def init_router_root(app):
    app.include_router(root.router, tags=["Main"])

# Include Routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(recommendation_rating.router, prefix="/recommendation-ratings", tags=["Recommendation Ratings"])
router.include_router(recommendation.router, prefix="/recommendations", tags=["Recommendations"])


def get_router():
    return router
