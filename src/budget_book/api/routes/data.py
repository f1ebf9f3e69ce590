from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from budget_book.api.dependencies import get_ledger
from budget_book.api.schemas import ImportIssue, ImportResponse
from budget_book.domain.csv_codec import CSV_MEDIA_TYPE
from budget_book.logger import get_logger
from budget_book.services.ledger import LedgerService

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


@router.get("/csv/export")
async def export_csv(
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> Response:
    export = await ledger.export_to_csv()
    if export.count == 0:
        raise HTTPException(status_code=404, detail="No transactions to export")

    # Non-ASCII filenames need the RFC 5987 form
    disposition = f"attachment; filename=\"export.csv\"; filename*=UTF-8''{quote(export.filename)}"
    return Response(
        content=export.content,
        media_type=CSV_MEDIA_TYPE,
        headers={
            "Content-Disposition": disposition,
            "X-Transaction-Count": str(export.count),
        },
    )


@router.post("/csv/import", response_model=ImportResponse)
async def import_csv(
    request: Request,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> ImportResponse:
    raw = await request.body()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded") from exc
    if not text.strip():
        raise HTTPException(status_code=400, detail="Empty CSV payload")

    report = await ledger.import_from_csv(text)
    return ImportResponse(
        imported=report.imported_count,
        skipped=report.skipped_count,
        transactions=report.imported,
        issues=[ImportIssue.from_issue(issue) for issue in report.skipped],
    )


@router.post("/clear-data")
async def clear_data(
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.clear_all_data()
    logger.info("[LEDGER] Data cleared by user.")
    return {"status": "success", "message": "All data cleared"}
