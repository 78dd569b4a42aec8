from fastapi import APIRouter, Request


router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check endpoint"""
    provider = getattr(request.app.state, "ollama", None)

    return {
        "status": "healthy",
        "ollama_url": provider.base_url if provider else None,
    }
