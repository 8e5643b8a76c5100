# Session endpoint - returns the signed-in user's non-sensitive identity

from fastapi import APIRouter, Depends

from insightful.core.security import CurrentUser, get_current_user

router = APIRouter()


@router.get("/auth/session")
async def get_session(user: CurrentUser = Depends(get_current_user)):
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
        }
    }
