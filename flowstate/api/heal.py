"""
REST API router: heal, inspection, patch and asset endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from flowstate.api.deps import (
    decode_screenshot,
    get_analyzer,
    get_artist,
    get_inspector,
    get_ledger,
    get_orchestrator,
    get_surgeon,
    resolve_code_path,
    verify_token,
)
from flowstate.core.config import settings
from flowstate.core.errors import BudgetExceededError
from flowstate.core.log import logger
from flowstate.core.storage import get_assets_dir, safe_filename
from flowstate.core.usage import UsageLedger
from flowstate.diagnosis.local import LocalAnalyzer
from flowstate.diagnosis.visual import InspectionService
from flowstate.fixes.assets import AssetService
from flowstate.fixes.chat import design_chat
from flowstate.fixes.code import PatchService
from flowstate.fixes.css import suggest_css
from flowstate.orchestration import HealOrchestrator
from flowstate.schema.asset import AssetFileRequest, AssetRequest, AssetResult, ErrorType, SavedAsset, SaveAssetRequest
from flowstate.schema.chat import ChatReply, ChatRequest
from flowstate.schema.css import CssSuggestion, SuggestCssRequest
from flowstate.schema.defect import InspectionResult
from flowstate.schema.element import DesignSystem, PageSample
from flowstate.schema.heal import (
    AnalyzeRequest,
    AnnotationInspectRequest,
    ElementAnalysis,
    HealRequest,
    HealResult,
    InspectRequest,
)
from flowstate.schema.patch import DiffLine, DiffRequest, DiffResponse, FixRequest, PatchResult

__all__ = ("router",)

router = APIRouter(
    prefix="/v1",
    tags=["heal"],
    dependencies=[Depends(verify_token)],
)


@router.post("/heal")
async def heal(
    body: HealRequest,
    orchestrator: HealOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> HealResult:
    """Run the full inspect -> patch pipeline on one screenshot and source file."""
    screenshot = decode_screenshot(body.screenshot)
    code_path = resolve_code_path(body.code_path) if body.code_path else None
    logger.info(f"Heal request: {len(body.code)} chars of code, {body.mime_type}")
    return await orchestrator.run_heal(
        screenshot,
        body.code,
        body.options,
        code_path=code_path,
        mime_type=body.mime_type,
        snapshot=body.snapshot,
    )


@router.post("/inspect")
async def inspect(
    body: InspectRequest,
    inspector: InspectionService = Depends(get_inspector),  # noqa: B008
) -> InspectionResult:
    """Inspect a screenshot, or fall back to rule-based analysis of an element context."""
    if body.screenshot:
        return await inspector.inspect_image(decode_screenshot(body.screenshot), body.mime_type)
    if body.context is not None:
        return await inspector.inspect_context(body.context)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Missing required field: screenshot (base64) or context (object)",
    )


@router.post("/inspect-annotations")
async def inspect_annotations(
    body: AnnotationInspectRequest,
    inspector: InspectionService = Depends(get_inspector),  # noqa: B008
) -> InspectionResult:
    """Inspect a screenshot carrying user annotations and voice instructions."""
    logger.info(
        f"Annotated inspection: {len(body.annotations)} annotation(s), "
        f"{len(body.voice_instructions)} voice instruction(s)"
    )
    return await inspector.inspect_image(
        decode_screenshot(body.screenshot),
        body.mime_type,
        annotations=body.annotations,
        voice_instructions=body.voice_instructions,
    )


@router.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    orchestrator: HealOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> ElementAnalysis:
    """Instant local analysis of one element, merged with a remote inspection."""
    screenshot = decode_screenshot(body.screenshot) if body.screenshot else None
    return await orchestrator.analyze_element(body.snapshot, screenshot, body.context, body.mime_type)


@router.post("/design-system")
async def set_design_system(
    body: PageSample,
    analyzer: LocalAnalyzer = Depends(get_analyzer),  # noqa: B008
) -> DesignSystem:
    """Compute the page baseline from sampled buttons and inputs."""
    return analyzer.design_system.update(body)


@router.delete("/design-system", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_design_system(
    analyzer: LocalAnalyzer = Depends(get_analyzer),  # noqa: B008
) -> None:
    """Forget the page baseline, e.g. after navigation."""
    analyzer.invalidate()


@router.post("/fix")
async def fix(
    body: FixRequest,
    surgeon: PatchService = Depends(get_surgeon),  # noqa: B008
) -> PatchResult:
    logger.info(f"Fix request: {len(body.defects)} defect(s)")
    return await surgeon.patch(body.code, body.defects)


@router.post("/diff")
async def diff(body: DiffRequest) -> DiffResponse:
    """Line-by-line comparison of original and fixed code."""
    if not body.original or not body.fixed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: original and fixed",
        )
    original_lines = body.original.split("\n")
    fixed_lines = body.fixed.split("\n")

    lines: list[DiffLine] = []
    for i in range(max(len(original_lines), len(fixed_lines))):
        before = original_lines[i] if i < len(original_lines) else ""
        after = fixed_lines[i] if i < len(fixed_lines) else ""
        if before == after:
            continue
        kind = "added" if not before else "removed" if not after else "changed"
        lines.append(DiffLine(line=i + 1, type=kind, original=before, fixed=after))

    return DiffResponse(total_changes=len(lines), diff=lines)


def _asset_response(result: AssetResult) -> AssetResult | JSONResponse:
    if result.success:
        return result
    if result.error_type is ErrorType.budget:
        raise BudgetExceededError(result.budget_remaining or 0.0, settings.ASSET_ESTIMATED_COST)
    code = status.HTTP_400_BAD_REQUEST if result.error_type is ErrorType.input else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


@router.post("/generate-asset", response_model=AssetResult)
async def generate_asset(
    body: AssetRequest,
    artist: AssetService = Depends(get_artist),  # noqa: B008
):
    """Generate an image asset. Responds 402 when the budget cannot cover it."""
    result = await artist.generate(body.prompt, body.context, body.theme)
    return _asset_response(result)


@router.post("/generate-asset-file", response_model=AssetResult)
async def generate_asset_file(
    body: AssetFileRequest,
    artist: AssetService = Depends(get_artist),  # noqa: B008
):
    """Generate an image asset and save it under the assets directory."""
    try:
        output_path = get_assets_dir() / safe_filename(body.filename)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    result = await artist.generate(body.prompt, body.context, body.theme, output_path=output_path)
    return _asset_response(result)


@router.post("/suggest-css")
async def suggest(
    body: SuggestCssRequest,
    request: Request,
    ledger: UsageLedger = Depends(get_ledger),  # noqa: B008
) -> CssSuggestion:
    result = await suggest_css(
        body.element,
        body.current_css,
        system_instructions=body.system_instructions,
        design_system=body.design_system,
        client=getattr(request.app.state, "ai_client", None),
        ledger=ledger,
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.error)
    return result


@router.post("/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    ledger: UsageLedger = Depends(get_ledger),  # noqa: B008
) -> ChatReply:
    result = await design_chat(
        body.message,
        context=body.context,
        history=body.history,
        client=getattr(request.app.state, "ai_client", None),
        ledger=ledger,
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.error)
    return result


@router.post("/assets")
async def save_asset(
    body: SaveAssetRequest,
    artist: AssetService = Depends(get_artist),  # noqa: B008
) -> SavedAsset:
    try:
        return await artist.save_asset(body.image, body.prompt, body.filename)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/assets")
async def list_assets(
    artist: AssetService = Depends(get_artist),  # noqa: B008
) -> list[SavedAsset]:
    return await artist.list_assets()
