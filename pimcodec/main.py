import io
import logging

from fastapi import FastAPI, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse

from .config import get_settings
from .errors import PimCodecError, UploadTooLargeError
from .formats import MEDIA_TYPES, detect_format, generate_document, output_filename, parse_document

logger = logging.getLogger(__name__)

settings = get_settings()
settings.setup_logging()

app = FastAPI(title="pimcodec")


@app.exception_handler(PimCodecError)
async def codec_error_handler(request, exc: PimCodecError):
    status = 413 if isinstance(exc, UploadTooLargeError) else 415
    logger.warning("Rejected upload: %s", exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


async def _read_upload(file: UploadFile) -> str:
    limit = get_settings().server.max_upload_bytes
    data = await file.read()
    if len(data) > limit:
        raise UploadTooLargeError(len(data), limit)
    return data.decode(errors="ignore")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/parse")
async def parse(file: UploadFile):
    text = await _read_upload(file)
    kind = detect_format(file.filename, text)
    result = parse_document(text, kind)
    logger.info(
        "Parsed %s as %s: %d record(s), %d error(s)",
        file.filename, kind, len(result["records"]), len(result["errors"]),
    )
    return jsonable_encoder(result)


@app.post("/convert")
async def convert(file: UploadFile):
    text = await _read_upload(file)
    kind = detect_format(file.filename, text)
    result = parse_document(text, kind)
    output = generate_document(result["records"], kind)
    out_name = output_filename(file.filename, kind)
    return StreamingResponse(
        io.BytesIO(output.encode("utf-8")),
        media_type=MEDIA_TYPES[kind],
        headers={"Content-Disposition": f"attachment; filename={out_name}"},
    )
