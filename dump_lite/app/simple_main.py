#!/usr/bin/env python3
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
import aiofiles, logging, os, tempfile
from pathlib import Path
from dump_large.json_worker.streaming_extractor import extract
from shared.config import RunConfig, debug_enabled
from shared.errors import DumpError, FilterCompileError

app = FastAPI(title="Dump-Lite")
logger = logging.getLogger(__name__)

request_counter = Counter("dump_requests_total", "Total dump uploads")
records_counter = Counter("dump_records_total", "Records processed", ["outcome"])
process_duration = Histogram("dump_process_seconds", "Time spent extracting")

UPLOAD_CHUNK = 8*1024*1024  # 8 MB


def _unlink(*paths):
    for p in paths:
        Path(p).unlink(missing_ok=True)


@app.get("/health", tags=["ops"])
def health():
    return {"status": "healthy"}


@app.get("/metrics", tags=["ops"])
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/process/file", tags=["process"])
async def process_file(file: UploadFile = File(...),
                       jq_filter: str = Form(".", alias="filter"),
                       continue_on_error: bool = Form(False),
                       validate: bool = Form(False)):
    request_counter.inc()
    fd, in_path = tempfile.mkstemp(suffix=".dump")
    os.close(fd)
    fd, out_path = tempfile.mkstemp(suffix=".ndjson")
    os.close(fd)
    total = 0
    try:
        async with aiofiles.open(in_path, "wb") as tmp:
            while True:
                chunk = await file.read(UPLOAD_CHUNK)
                if not chunk:
                    break
                await tmp.write(chunk)
                total += len(chunk)
        config = RunConfig(
            input_source=in_path,
            filter_expression=jq_filter,
            output_destination=out_path,
            continue_on_error=continue_on_error,
            overwrite_existing_output=True,
            validate_records=validate,
        )
        with process_duration.time():
            counters = await run_in_threadpool(extract, config)
    except FilterCompileError as e:
        _unlink(in_path, out_path)
        raise HTTPException(status_code=400, detail={"stage": e.stage, "detail": str(e)})
    except DumpError as e:
        _unlink(in_path, out_path)
        logger.error("%s failed: %s", file.filename, e.describe())
        raise HTTPException(status_code=422, detail={"stage": e.stage, "detail": str(e)})
    except BaseException:
        _unlink(in_path, out_path)
        raise
    _unlink(in_path)

    records_counter.labels("emitted").inc(counters.records_emitted)
    records_counter.labels("skipped").inc(counters.records_skipped)
    records_counter.labels("empty").inc(counters.records_empty)
    logger.info("%s: %s bytes uploaded, %s records", file.filename, total, counters.records_seen)
    headers = {
        "X-Records-Seen": str(counters.records_seen),
        "X-Records-Emitted": str(counters.records_emitted),
        "X-Records-Skipped": str(counters.records_skipped),
        "X-Bytes-Consumed": str(counters.bytes_consumed),
    }
    return FileResponse(out_path, media_type="application/x-ndjson", headers=headers,
                        background=BackgroundTask(_unlink, out_path))


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.DEBUG if debug_enabled() else logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
