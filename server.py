from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from betterask.analysis_service import AnalysisError, PromptAnalysisService
from betterask.entities import AnalyzeRequest, ErrorResponse, PromptAnalysis, TagRequest, TagResponse
from betterask.google_helpers import CORS_ALLOW_ORIGINS, PORT, logger
from betterask.llm_client import GeminiGateway
from betterask.response_cache import GLOBAL_TAG_CACHE
from betterask.tag_service import TagGenerationService, TagRequestError

app = FastAPI(title="BetterAsk Prompt Coach")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_GATEWAY = GeminiGateway()


def get_gateway() -> GeminiGateway:
    return _GATEWAY


def get_tag_service(gateway=Depends(get_gateway)) -> TagGenerationService:
    return TagGenerationService(gateway, cache=GLOBAL_TAG_CACHE)


def get_analysis_service(gateway=Depends(get_gateway)) -> PromptAnalysisService:
    return PromptAnalysisService(gateway)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health(gateway=Depends(get_gateway)):
    return {"status": "ok", "gemini_configured": gateway.is_configured}


@app.post("/api/tags/generate", response_model=TagResponse, response_model_exclude_none=True)
async def generate_tags(payload: TagRequest, service: TagGenerationService = Depends(get_tag_service)):
    try:
        return await service.generate(payload)
    except TagRequestError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})


ANALYZE_ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 401, 403, 429, 500, 503)}


@app.post("/api/gemini/analyze", response_model=PromptAnalysis, responses=ANALYZE_ERROR_RESPONSES)
async def analyze_prompt(payload: AnalyzeRequest, service: PromptAnalysisService = Depends(get_analysis_service)):
    return await service.analyze(payload.studentPrompt)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Server listening on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
