import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from src.core.schema import PaginationIn, PaginationOut
from src.modules.moderation.dependencies import (
    get_admin_service,
    get_hook_registry,
    get_moderation_client,
    get_moderation_repository,
    get_scan_flow,
    require_admin,
)
from src.modules.moderation.repositories import ModerationRepository
from src.modules.moderation.schemas import (
    BulkActionResult,
    BulkRecordIds,
    CommentSubmission,
    CommentVerdict,
    HookOutcome,
    ModerationRecordOut,
    ModerationStats,
    PostSubmission,
    PostVerdict,
    RecordFilters,
    ScanIn,
    ScanResult,
    UsageError,
    UsageInfo,
    UsernameSubmission,
    UsernameVerdict,
)
from src.modules.moderation.services import HookRegistry, ModerationAdminService, ModerationClient, ScanFlow

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/scan", response_model=ScanResult)
async def scan_content(payload: ScanIn, flow: ScanFlow = Depends(get_scan_flow)):
    """Scan arbitrary text through the decision cache."""
    context = {**payload.context, "type": payload.entity_class}
    return await flow.scan_field(payload.entity_class, payload.entity_id, payload.content, payload.profile_id, context)


@router.post("/posts", response_model=PostVerdict)
async def moderate_post(post: PostSubmission, flow: ScanFlow = Depends(get_scan_flow)):
    return await flow.moderate_post(post)


@router.post("/comments", response_model=CommentVerdict)
async def moderate_comment(comment: CommentSubmission, flow: ScanFlow = Depends(get_scan_flow)):
    return await flow.moderate_comment(comment)


@router.post("/usernames", response_model=UsernameVerdict)
async def moderate_username(submission: UsernameSubmission, flow: ScanFlow = Depends(get_scan_flow)):
    return await flow.moderate_username(submission)


@router.post("/hooks/{trigger}", response_model=HookOutcome)
async def run_hook(
    trigger: str,
    payload: Any = Body(...),
    registry: HookRegistry = Depends(get_hook_registry),
):
    """Run a configured custom trigger over an arbitrary JSON payload."""
    return await registry.run(trigger, payload)


@router.get("/records", response_model=PaginationOut[ModerationRecordOut])
async def list_records(
    pagination: PaginationIn = Depends(),
    status_filter: str | None = Query(default=None, alias="status"),
    ref_type: str | None = Query(default=None),
    repository: ModerationRepository = Depends(get_moderation_repository),
):
    rows, total = await repository.fetch(
        page=pagination.page,
        per_page=pagination.size,
        filters=RecordFilters(status=status_filter, ref_type=ref_type),
    )
    return PaginationOut[ModerationRecordOut](
        total=total,
        items=[ModerationRecordOut.model_validate(row) for row in rows],
        page=pagination.page,
        size=pagination.size,
    )


@router.post("/records/allow", response_model=BulkActionResult)
async def allow_records(payload: BulkRecordIds, admin: ModerationAdminService = Depends(get_admin_service)):
    """Override several decisions to allow; unknown ids are reported under `failed`."""
    return await admin.mark_allowed_many(payload.ids)


@router.post("/records/rescan", response_model=BulkActionResult)
async def rescan_records(payload: BulkRecordIds, admin: ModerationAdminService = Depends(get_admin_service)):
    return await admin.rescan_many(payload.ids)


@router.get("/records/{record_id}", response_model=ModerationRecordOut)
async def get_record(record_id: uuid.UUID, admin: ModerationAdminService = Depends(get_admin_service)):
    return await admin.get_record(record_id)


@router.post("/records/{record_id}/allow", response_model=ModerationRecordOut)
async def allow_record(record_id: uuid.UUID, admin: ModerationAdminService = Depends(get_admin_service)):
    return await admin.mark_allowed(record_id)


@router.post("/records/{record_id}/rescan", response_model=ModerationRecordOut)
async def rescan_record(record_id: uuid.UUID, admin: ModerationAdminService = Depends(get_admin_service)):
    return await admin.rescan(record_id)


@router.get("/stats", response_model=ModerationStats)
async def get_stats(admin: ModerationAdminService = Depends(get_admin_service)):
    return await admin.stats()


@router.delete("/quota", status_code=status.HTTP_204_NO_CONTENT)
async def reset_quota(admin: ModerationAdminService = Depends(get_admin_service)):
    await admin.reset_quota()


@router.get("/usage", response_model=UsageInfo | UsageError)
async def get_usage(client: ModerationClient = Depends(get_moderation_client)):
    return await client.usage()
