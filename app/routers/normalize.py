import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from app.normalizers import Normalizer, normalize_batch, summarize
from app.settings import MAX_NAMES_PER_REQUEST
from app.tabular import (
    CSVProcessingError,
    add_generic_name_column,
    build_generic_name_map,
    detect_medication_column,
    extract_column_values,
    generate_csv,
    read_csv_upload,
    validate_column,
    validate_csv_structure,
)

log = logging.getLogger(__name__)

# --------------------------------------------------------------------
# Router setup
# --------------------------------------------------------------------
router = APIRouter(prefix="", tags=["normalize"])

OUTPUT_FILENAME = "normalized-medications.csv"


def get_normalizer(request: Request) -> Normalizer:
    """The shared RxNorm client created in the app lifespan."""
    return request.app.state.normalizer


# Request schemas
class LookupRequest(BaseModel):
    name: str


class NormalizeRequest(BaseModel):
    names: List[str]


@router.post("/lookup")
def lookup(req: LookupRequest, normalizer: Normalizer = Depends(get_normalizer)) -> Dict[str, Any]:
    """
    Normalize a single drug name.

    Request body:
      {"name": "Tylenol"}

    Response JSON (one NormalizationResult):
      {"original_name": "Tylenol", "generic_name": "acetaminophen",
       "rxcui": "202433", "status": "success", "error_message": null}
    """
    name = (req.name or "").strip()
    if not name:
        raise HTTPException(400, "Missing 'name'")
    return normalizer.normalize(name).to_dict()


@router.post("/normalize")
def normalize(req: NormalizeRequest, normalizer: Normalizer = Depends(get_normalizer)) -> Dict[str, Any]:
    """
    Normalize a list of drug names, one result per element, in order.

    Names are NOT de-duplicated here; send unique names to save lookups.
    A name that fails comes back with status "error" or "not_found"
    instead of failing the request.

    Returns:
        {
          "ok": True,
          "total": <n>,
          "summary": {"total", "success", "not_found", "error"},
          "results": [ ... ]
        }
    """
    if not req.names:
        raise HTTPException(400, "'names' must be a non-empty list")
    if len(req.names) > MAX_NAMES_PER_REQUEST:
        raise HTTPException(400, f"At most {MAX_NAMES_PER_REQUEST} names per request")

    results = normalize_batch(req.names, normalizer)
    return {
        "ok": True,
        "total": len(results),
        "summary": summarize(results),
        "results": [r.to_dict() for r in results],
    }


@router.post("/normalize/csv")
def normalize_csv(
    file: UploadFile = File(...),
    column: Optional[str] = Form(None),
    output: str = Form("csv"),
    normalizer: Normalizer = Depends(get_normalizer),
):
    """
    Upload a CSV, normalize one column, and get it back with GENERIC_NAME added.

    Form fields:
      file    the CSV (header row required, max 10MB, at most MAX_NAMES_PER_REQUEST distinct names)
      column  drug name column; auto-detected if omitted
      output  "csv" (download) or "json"

    Each distinct drug string is looked up once; every row holding that
    string gets the same GENERIC_NAME. Unresolved rows get "NOT_FOUND".
    """
    if output not in ("csv", "json"):
        raise HTTPException(400, "output must be 'csv' or 'json'")

    try:
        table = read_csv_upload(file.filename, file.content_type, file.file.read())
        check = validate_csv_structure(table)

        col = (column or "").strip() or detect_medication_column(table.columns)
        if not col:
            raise CSVProcessingError(
                "Could not auto-detect medication column; pass 'column'", "COLUMN_NOT_FOUND"
            )
        validate_column(table.columns, col)

        unique_names = extract_column_values(table.rows, col)
        if len(unique_names) > MAX_NAMES_PER_REQUEST:
            raise CSVProcessingError(
                f"Column {col!r} has {len(unique_names)} distinct names; at most {MAX_NAMES_PER_REQUEST} per upload",
                "TOO_MANY_NAMES",
                {"distinctNames": len(unique_names), "maxNames": MAX_NAMES_PER_REQUEST},
            )
        log.info("csv %s: %d rows, %d unique names in %r", file.filename, len(table.rows), len(unique_names), col)

        results = normalize_batch(unique_names, normalizer) if unique_names else []
        rows = add_generic_name_column(table.rows, col, build_generic_name_map(results))

        if output == "json":
            return {
                "ok": True,
                "column": col,
                "rows": rows,
                "results": [r.to_dict() for r in results],
                "summary": summarize(results),
                "warnings": check["warnings"],
            }
        return Response(
            content=generate_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{OUTPUT_FILENAME}"'},
        )

    # ------------------------------------------------------------
    # Global error handling
    # ------------------------------------------------------------
    except CSVProcessingError as e:
        log.warning("csv rejected (%s): %s", e.code, e)
        raise HTTPException(400, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    except Exception as e:
        log.exception("csv normalization failed")
        raise HTTPException(500, f"Normalization failed: {e}")
