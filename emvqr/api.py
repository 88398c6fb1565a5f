"""FastAPI application for emvqr."""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response

from .config import settings
from .emv_encoder import (
    TAG_ADDITIONAL_DATA,
    TAG_CRC,
    TAG_MERCHANT_ACCOUNT,
    CRCMismatch,
    EncodedPayload,
    decode_composite,
    decode_payload,
)
from .logging_conf import configure_logging
from .middleware import RequestLoggingMiddleware
from .models import SAMPLE_RECORD, MerchantRecord
from .monitoring import metrics_payload, record_service_error
from .renderer import RenderFailure, RenderOptions
from .schemas import (
    DecodeRequest,
    DecodeResponse,
    ExportResponse,
    GenerateQRResponse,
    ImageFormatEnum,
    LiveStateResponse,
    MerchantRecordIn,
)
from .services.errors import (
    ServiceError,
    err_bad_payload,
    err_crc_mismatch,
    err_export_failed,
    err_render_failed,
    err_value_too_long,
)
from .services.export import ExportFailure, download_filename, export_qr_image
from .services.generator import PaymentQRGenerator
from .services.session import QRSession, SessionState
from .tlv import ValueTooLong

app = FastAPI(title="emvqr", version="0.1.0")
app.add_middleware(RequestLoggingMiddleware)

logger = logging.getLogger("emvqr.api")


def _warn_insecure_defaults() -> None:
    if settings.api_key == "dev-secret-key":
        logger.warning(
            "api key is using the default value",
            extra={"config_key": "api_key"},
        )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    _warn_insecure_defaults()


async def require_api_key(x_api_key: str = Header(...)) -> None:
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def get_generator() -> PaymentQRGenerator:
    render = settings.render
    options = RenderOptions(
        target_pixel_width=render.target_pixel_width,
        margin_modules=render.margin_modules,
        foreground_color=render.foreground_color,
        background_color=render.background_color,
    )
    return PaymentQRGenerator(mode=settings.additional_data_mode, render_options=options)


@lru_cache(maxsize=1)
def get_live_session() -> QRSession:
    """One shared editor session; each PUT supersedes the previous record."""

    return QRSession(get_generator())


def _live_state(state: SessionState) -> LiveStateResponse:
    return LiveStateResponse(
        generation=state.generation,
        payload=state.payload,
        crc=state.encoded.crc if state.encoded else None,
        qr_png_base64=state.image.base64 if state.image else None,
        render_error=str(state.render_error) if state.render_error else None,
    )


def _encode(generator: PaymentQRGenerator, record: MerchantRecord) -> EncodedPayload:
    try:
        return generator.encode(record)
    except ValueTooLong as exc:
        raise err_value_too_long(str(exc)) from exc


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    route = request.scope.get("route")
    route_path = route.path if route else request.url.path
    logger.warning(
        "service error",
        extra={"code": exc.code, "path": route_path, "method": request.method},
    )
    record_service_error(exc.code, route_path)
    return JSONResponse(status_code=exc.status_code, content={"code": exc.code, "message": exc.message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    route = request.scope.get("route")
    route_path = route.path if route else request.url.path
    logger.exception(
        "unhandled exception",
        extra={"path": route_path, "method": request.method},
    )
    return JSONResponse(status_code=500, content={"code": "ERR_INTERNAL", "message": "Internal server error"})


@app.get("/health", tags=["system"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["system"])
async def metrics() -> Response:
    payload, content_type = metrics_payload()
    return Response(content=payload, media_type=content_type)


@app.get("/v1/emv/sample", response_model=MerchantRecordIn, tags=["emv"])
async def sample_record() -> MerchantRecordIn:
    return MerchantRecordIn.from_record(SAMPLE_RECORD)


@app.post("/v1/emv", response_model=GenerateQRResponse, tags=["emv"], dependencies=[Depends(require_api_key)])
async def generate_emv(
    payload: MerchantRecordIn,
    generator: PaymentQRGenerator = Depends(get_generator),
) -> GenerateQRResponse:
    encoded = _encode(generator, payload.to_record())
    try:
        image = await generator.render(encoded, image_format="png")
    except RenderFailure as exc:
        return GenerateQRResponse(payload=encoded.payload, crc=encoded.crc, render_error=str(exc))

    return GenerateQRResponse(payload=encoded.payload, crc=encoded.crc, qr_png_base64=image.base64)


@app.post("/v1/emv/image", tags=["emv"], dependencies=[Depends(require_api_key)])
async def download_emv_image(
    payload: MerchantRecordIn,
    image_format: ImageFormatEnum = Query(default=ImageFormatEnum.PNG, alias="format"),
    generator: PaymentQRGenerator = Depends(get_generator),
) -> Response:
    encoded = _encode(generator, payload.to_record())
    try:
        image = await generator.render(encoded, image_format=image_format.value)
    except RenderFailure as exc:
        raise err_render_failed(str(exc)) from exc

    filename = download_filename(payload.merchant_name, image.media_type)
    return Response(
        content=image.data,
        media_type=image.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"', "X-EMV-CRC": encoded.crc},
    )


@app.post("/v1/emv/export", response_model=ExportResponse, tags=["emv"], dependencies=[Depends(require_api_key)])
async def export_emv_image(
    payload: MerchantRecordIn,
    generator: PaymentQRGenerator = Depends(get_generator),
) -> ExportResponse:
    encoded = _encode(generator, payload.to_record())
    try:
        image = await generator.render(encoded, image_format="png")
    except RenderFailure as exc:
        raise err_render_failed(str(exc)) from exc

    try:
        target = export_qr_image(image, settings.export_dir, payload.merchant_name)
    except ExportFailure as exc:
        raise err_export_failed(str(exc)) from exc

    return ExportResponse(path=str(target), filename=target.name, crc=encoded.crc)


@app.put("/v1/emv/live", response_model=LiveStateResponse, tags=["emv"], dependencies=[Depends(require_api_key)])
async def update_live_record(
    payload: MerchantRecordIn,
    session: QRSession = Depends(get_live_session),
) -> LiveStateResponse:
    try:
        state = await session.update(payload.to_record())
    except ValueTooLong as exc:
        raise err_value_too_long(str(exc)) from exc
    return _live_state(state)


@app.get("/v1/emv/live", response_model=LiveStateResponse, tags=["emv"], dependencies=[Depends(require_api_key)])
async def get_live_state(session: QRSession = Depends(get_live_session)) -> LiveStateResponse:
    return _live_state(session.state)


@app.post("/v1/emv/decode", response_model=DecodeResponse, tags=["emv"], dependencies=[Depends(require_api_key)])
async def decode_emv(payload: DecodeRequest) -> DecodeResponse:
    try:
        fields = decode_payload(payload.payload)
        merchant_account = decode_composite(fields.get(TAG_MERCHANT_ACCOUNT, ""))
        additional_data = decode_composite(fields.get(TAG_ADDITIONAL_DATA, ""))
    except CRCMismatch as exc:
        raise err_crc_mismatch(str(exc)) from exc
    except ValueError as exc:
        raise err_bad_payload(str(exc)) from exc

    return DecodeResponse(
        crc=fields[TAG_CRC],
        fields=fields,
        merchant_account=merchant_account,
        additional_data=additional_data,
    )
