"""API route definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse

from pixgate.api.middleware import verify_signed_url
from pixgate.api.schemas import ErrorResponse
from pixgate.imaging.params import TransformParams

if TYPE_CHECKING:
    from pixgate.config import Settings
    from pixgate.pipeline import ImagePipeline

router = APIRouter()
image_router = APIRouter(dependencies=[Depends(verify_signed_url)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_pipeline(request: Request) -> ImagePipeline:
    pipeline: ImagePipeline = request.app.state.pipeline
    return pipeline


@router.get("/", response_class=PlainTextResponse, summary="Welcome message")
async def index() -> str:
    return "welcome to pixgate"


@router.get(
    "/health",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Liveness probe",
)
async def health() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@image_router.get(
    "/{source_path}/{image_key:path}",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {"image/jpeg": {}, "image/png": {}}},
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Fetch a transformed image",
)
async def get_image(source_path: str, image_key: str, request: Request) -> Response:
    """Return the image at ``image_key`` with the transforms in the query applied.

    Query parameters: ``w``, ``h``, ``format`` (png|jpeg|jpg), ``blur``,
    ``sharpen``, ``enhance``, ``facecrop`` (bare flag means true), ``facepad``,
    plus ``s`` and ``expires`` for signed URLs.
    """
    settings = _get_settings(request)
    source = settings.find_source(source_path)
    if source is None or not image_key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    params = TransformParams.from_query(request.query_params)
    params.check_output_size(settings.max_image_pixels)
    artifact = await _get_pipeline(request).fetch(source, image_key, params)
    return Response(content=artifact.data, media_type=artifact.content_type)
