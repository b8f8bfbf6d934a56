from fastapi import APIRouter


router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint"""
    from chatstream.providers.registry import provider_registry

    return {
        "status": "healthy",
        "models": provider_registry.get_model_ids(),
    }
