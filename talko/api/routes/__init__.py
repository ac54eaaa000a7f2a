from fastapi import APIRouter

from talko.api.routes import audio, auth, chat, deep_learning, documents, features, health, images, nlp

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(features.router, prefix="/features", tags=["features"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
api_router.include_router(audio.router, prefix="/audio", tags=["audio"])
api_router.include_router(images.router, prefix="/images", tags=["images"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
api_router.include_router(nlp.router, prefix="/nlp", tags=["nlp"])
api_router.include_router(deep_learning.router, prefix="/deep-learning", tags=["deep-learning"])
