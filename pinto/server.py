"""
Pinto HTTP API - FastAPI Application

Stateless endpoints over the toolchain:
- parse DSL source into a document AST
- compile DSL source into canvas shapes
- decompile canvas shapes back into DSL source
- lint DSL source
CORS is open to the local frontend dev servers.
"""
import logging
import os
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .ast_builder import parse
from .compiler import parse_and_compile
from .decompiler import decompile
from .errors import LayoutFailure
from .models import CompileOptions
from .validation import validate_document, validation_summary

logger = logging.getLogger(__name__)

API_HOST = os.environ.get("PINTO_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("PINTO_PORT", "8765"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "PINTO_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]


# --- FastAPI App ---

app = FastAPI(
    title="Pinto API",
    description="Parse, compile and decompile Pinto diagram DSL",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request models ---

class SourceRequest(BaseModel):
    source: str


class CompileRequest(BaseModel):
    source: str
    options: Optional[CompileOptions] = None


class DecompileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shapes: list[dict[str, Any]] = Field(default_factory=list)
    include_positions: bool = Field(default=True, alias="includePositions")


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


# --- Toolchain ---

@app.post("/api/parse")
async def parse_source(request: SourceRequest):
    """Parse DSL source. Errors are part of the document, not HTTP errors."""
    document = parse(request.source)
    return {"success": document.ok, "document": document.to_json_dict()}


@app.post("/api/compile")
async def compile_source(request: CompileRequest):
    """Parse and compile DSL source into canvas shapes."""
    try:
        result = await parse_and_compile(request.source, request.options)
    except LayoutFailure as e:
        logger.error("Layout failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Layout failed: {e}")

    payload = result.to_json_dict()
    return {
        "success": not result.errors,
        "shapes": payload["shapes"],
        "errors": payload["errors"],
    }


@app.post("/api/decompile")
async def decompile_shapes(request: DecompileRequest):
    """Reconstruct DSL source from canvas shapes."""
    source = decompile(request.shapes, include_positions=request.include_positions)
    return {"success": True, "source": source}


@app.post("/api/validate")
async def validate_source(request: SourceRequest):
    """
    Lint DSL source.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = validate_document(parse(request.source))
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    }


# --- Run with uvicorn ---

def run(host: str = API_HOST, port: int = API_PORT):
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
