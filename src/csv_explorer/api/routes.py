from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import Body, Depends, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from csv_explorer.config import settings
from csv_explorer.core.ingestion import sample_download_text
from csv_explorer.state.store import DEFAULT_VIEW_ID, DashboardStore
from csv_explorer.utils.exceptions import AppException, DatasetNotLoadedError, ViewNotFoundError
from csv_explorer.utils.logger import get_logger

logger = get_logger(__name__)

# --- Single local session ---
ACTIVE_STORE = DashboardStore()


def get_store() -> DashboardStore:
    return ACTIVE_STORE


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = app.dependency_overrides.get(get_store, get_store)()
    store.initialize()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    lifespan=lifespan,
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors(include_url=False, include_context=False, include_input=False)})


def _dump(model) -> Any:
    return model.model_dump(mode="json", by_alias=True)


def _snake_keys(patch: Dict[str, Any]) -> Dict[str, Any]:
    # "from" inside dateRange is already the field alias and stays as-is
    return {to_snake(key): value for key, value in patch.items()}


def _require_dataset(store: DashboardStore) -> None:
    if store.dataset is None:
        raise DatasetNotLoadedError()


def _dashboard(store: DashboardStore, limit: int = 100) -> Dict[str, Any]:
    return {
        "datasetName": store.dataset_name,
        "headers": store.headers,
        "metas": [_dump(meta) for meta in store.metas],
        "filters": _dump(store.filters),
        "grouping": _dump(store.grouping),
        "activeViewId": store.active_view_id,
        "summaries": [_dump(summary) for summary in store.summaries],
        "charts": [_dump(chart) for chart in store.displayed_charts],
        "rowCount": len(store.rows),
        "filteredRowCount": len(store.filtered_rows),
        "rows": store.filtered_rows[:limit],
        "loadingProgress": store.loading_progress,
        "error": store.error,
    }


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "online", "message": "CSV Explorer API is running"}


# --- Dataset ---

@app.post("/upload")
async def upload_csv(file: UploadFile = File(...), store: DashboardStore = Depends(get_store)):
    """
    Uploads a CSV file, profiles it and makes it the active dataset.
    """
    logger.info(f"Received file upload: {file.filename}")
    content = await file.read()
    store.load_csv_bytes(file.filename or "upload.csv", content)

    return {
        "message": "File uploaded and processed successfully.",
        "filename": store.dataset_name,
        "rows": len(store.rows),
        "columns": [{"name": meta.key, "type": meta.type.value} for meta in store.metas],
    }


@app.post("/sample")
async def load_sample(store: DashboardStore = Depends(get_store)):
    store.load_sample()
    return _dashboard(store)


@app.get("/sample/download", response_class=PlainTextResponse)
async def download_sample():
    return PlainTextResponse(sample_download_text(), media_type="text/csv; charset=utf-8")


@app.delete("/dataset")
async def clear_dataset(store: DashboardStore = Depends(get_store)):
    store.clear_dataset()
    return {"message": "Dataset cleared."}


@app.get("/dashboard")
async def dashboard(limit: int = 100, store: DashboardStore = Depends(get_store)):
    return _dashboard(store, limit)


# --- Filters & grouping ---

@app.patch("/filters")
async def patch_filters(patch: Dict[str, Any] = Body(...), store: DashboardStore = Depends(get_store)):
    _require_dataset(store)
    store.patch_filters(**_snake_keys(patch))
    return _dashboard(store)


@app.post("/filters/reset")
async def reset_filters(store: DashboardStore = Depends(get_store)):
    _require_dataset(store)
    store.reset_filters()
    return _dashboard(store)


@app.post("/filters/selection")
async def select_chart_value(
    column: str = Body(...),
    value: str = Body(...),
    store: DashboardStore = Depends(get_store),
):
    _require_dataset(store)
    store.select_chart_value(column, value)
    return _dashboard(store)


@app.delete("/filters/selection")
async def clear_chart_selection(store: DashboardStore = Depends(get_store)):
    store.clear_chart_selection()
    return _dashboard(store)


@app.get("/filter-options")
async def filter_options(store: DashboardStore = Depends(get_store)):
    return _dump(store.filter_options())


@app.patch("/grouping")
async def patch_grouping(patch: Dict[str, Any] = Body(...), store: DashboardStore = Depends(get_store)):
    _require_dataset(store)
    store.set_grouping(**_snake_keys(patch))
    return _dashboard(store)


# --- Views ---

@app.get("/views")
async def list_views(store: DashboardStore = Depends(get_store)):
    return {"activeViewId": store.active_view_id, "views": [_dump(view) for view in store.views]}


@app.post("/views")
async def save_view(name: str = Body(..., embed=True), store: DashboardStore = Depends(get_store)):
    return _dump(store.save_current_view(name))


@app.post("/views/{view_id}/apply")
async def apply_view(view_id: str, store: DashboardStore = Depends(get_store)):
    if view_id != DEFAULT_VIEW_ID and all(view.id != view_id for view in store.views):
        raise ViewNotFoundError(f"View '{view_id}' not found.")
    store.apply_view(view_id)
    return _dashboard(store)


@app.delete("/views/{view_id}")
async def delete_view(view_id: str, store: DashboardStore = Depends(get_store)):
    store.delete_view(view_id)
    return {"views": [_dump(view) for view in store.views]}


@app.get("/views/export")
async def export_views(store: DashboardStore = Depends(get_store)):
    return PlainTextResponse(store.export_views(), media_type="application/json")


@app.post("/views/import")
async def import_views(request: Request, store: DashboardStore = Depends(get_store)):
    raw = (await request.body()).decode("utf-8", errors="replace")
    views = store.import_views_json(raw)
    return {"imported": len(views), "views": [_dump(view) for view in views]}
