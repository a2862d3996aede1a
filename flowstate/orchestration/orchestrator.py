"""
Heal orchestrator: the inspect -> patch -> (re-inspect) loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from ulid import ULID

from flowstate.core.cache import cache as default_cache
from flowstate.core.cache import fingerprint
from flowstate.core.log import logger
from flowstate.core.storage import get_previews_dir, preview_path_for, write_text
from flowstate.diagnosis.local import LocalAnalyzer
from flowstate.diagnosis.merge import merge_defects
from flowstate.diagnosis.visual import InspectionService
from flowstate.fixes.code import PatchService
from flowstate.orchestration.convergence import should_stop
from flowstate.schema.defect import DefectReport, InspectionResult
from flowstate.schema.element import ElementContext, ElementSnapshot
from flowstate.schema.heal import (
    ElementAnalysis,
    HealIterationResult,
    HealOptions,
    HealResult,
    HealStage,
    StageError,
    SurgeryOutcome,
)

__all__ = ("CaptureScreenshot", "HealOrchestrator")

# Receives the patched code, returns a fresh screenshot of the re-rendered UI
CaptureScreenshot = Callable[[str], Awaitable[bytes]]

NO_DEFECTS_SUMMARY = "No defects detected — UI passed inspection."


class HealOrchestrator:
    def __init__(
        self,
        inspector: InspectionService,
        surgeon: PatchService,
        analyzer: LocalAnalyzer | None = None,
        cache: Any = None,
    ):
        self.inspector = inspector
        self.surgeon = surgeon
        self.analyzer = analyzer or LocalAnalyzer()
        self.cache = cache if cache is not None else default_cache

    async def run_heal(
        self,
        screenshot: bytes,
        code: str,
        options: HealOptions | None = None,
        *,
        code_path: str | Path | None = None,
        mime_type: str = "image/png",
        snapshot: ElementSnapshot | None = None,
        capture_screenshot: CaptureScreenshot | None = None,
    ) -> HealResult:
        """
        Run the heal loop for one screenshot + source pair.

        Each iteration inspects, stops on a clean report, otherwise patches.
        Re-inspection only happens when ``capture_screenshot`` is given and
        ``options.verify`` is set. On success the final code is written to a
        preview file; the original is overwritten only with ``auto_apply``.
        """
        options = options or HealOptions()
        result = HealResult()
        with logger.contextualize(heal_id=str(ULID())):
            await self._run(
                result,
                screenshot,
                code,
                options,
                code_path=code_path,
                mime_type=mime_type,
                snapshot=snapshot,
                capture_screenshot=capture_screenshot,
            )
        return result

    async def _run(
        self,
        result: HealResult,
        screenshot: bytes,
        code: str,
        options: HealOptions,
        **loop_kwargs: Any,
    ) -> None:
        logger.info(
            f"Heal started: {len(code)} chars, max_iterations={options.max_iterations}, "
            f"verify={options.verify}, auto_apply={options.auto_apply}"
        )

        try:
            async with asyncio.timeout(options.timeout_seconds):
                await self._heal_loop(result, screenshot, code, options, **loop_kwargs)
        except TimeoutError:
            logger.warning(f"Heal timed out after {options.timeout_seconds}s")
            result.success = False
            result.stage = HealStage.timeout
            result.error = f"Heal timed out after {options.timeout_seconds}s"
            result.summary = result.error

        logger.info(f"Heal finished: success={result.success}, {result.summary}")

    async def _heal_loop(
        self,
        result: HealResult,
        screenshot: bytes,
        code: str,
        options: HealOptions,
        *,
        code_path: str | Path | None,
        mime_type: str,
        snapshot: ElementSnapshot | None,
        capture_screenshot: CaptureScreenshot | None,
    ) -> None:
        current_code = code
        first_defect_count = 0

        for iteration in range(1, options.max_iterations + 1):
            logger.info(f"Heal iteration {iteration}/{options.max_iterations}")
            record = HealIterationResult(iteration=iteration, verified=iteration > 1)

            inspection = await self.inspector.inspect_image(screenshot, mime_type)
            if not inspection.success:
                record.inspection = StageError(error=inspection.error or "Inspection failed")
                result.iterations.append(record)
                self._fail(result, HealStage.inspect, record.inspection.error)
                return

            report = inspection.data
            if iteration == 1 and snapshot is not None:
                report = self._with_local_defects(report, snapshot)
            record.inspection = report

            if report.looks_good:
                result.iterations.append(record)
                if iteration > 1:
                    await self._write_outputs(result, current_code, code_path, options)
                result.success = True
                result.final_code = current_code
                result.summary = (
                    NO_DEFECTS_SUMMARY if iteration == 1 else f"Fixed after {iteration - 1} iteration(s)."
                )
                return

            logger.info(f"Found {len(report.defects)} defects")
            if iteration == 1:
                first_defect_count = len(report.defects)
            if report.needs_asset_generation:
                result.asset_prompt = report.asset_generation_prompt

            surgery = await self.surgeon.patch(current_code, report.defects)
            if not surgery.success:
                record.surgery = StageError(error=surgery.error or "Surgery failed")
                result.iterations.append(record)
                self._fail(result, HealStage.surgery, record.surgery.error)
                return

            record.surgery = SurgeryOutcome(code_length=len(surgery.code))
            current_code = surgery.code
            result.iterations.append(record)

            stop, reason = should_stop(
                iteration,
                options.max_iterations,
                verify=options.verify,
                can_recapture=capture_screenshot is not None,
            )
            if stop:
                logger.info(f"Heal loop stopping: {reason}")
                break

            try:
                screenshot = await capture_screenshot(current_code)
            except Exception:
                logger.exception("Screenshot capture failed; keeping the unverified patch")
                break

        await self._write_outputs(result, current_code, code_path, options)
        result.success = True
        result.final_code = current_code
        result.summary = f"Fixed {first_defect_count} defects."

    def _with_local_defects(self, report: DefectReport, snapshot: ElementSnapshot) -> DefectReport:
        local = self.analyzer.analyze(snapshot)
        if not local:
            return report
        logger.info(f"Local analyzer added {len(local)} defect(s) before patching")
        return report.model_copy(update={"looks_good": False, "defects": merge_defects(local, report.defects)})

    @staticmethod
    def _fail(result: HealResult, stage: HealStage, error: str) -> None:
        label = "Inspection" if stage is HealStage.inspect else "Surgery"
        logger.error(f"{label} failed: {error}")
        result.success = False
        result.stage = stage
        result.error = error
        result.summary = f"{label} failed: {error}"

    @staticmethod
    async def _write_outputs(
        result: HealResult,
        code: str,
        code_path: str | Path | None,
        options: HealOptions,
    ) -> None:
        """Write the preview file, and the original too when auto_apply is set."""
        if code_path is not None:
            path = preview_path_for(code_path)
        else:
            path = get_previews_dir() / f"{ULID()}.txt"
        result.preview_path = await write_text(path, code)
        logger.info(f"Preview written: {result.preview_path}")

        if not options.auto_apply:
            return
        if code_path is None:
            logger.warning("auto_apply requested without a code path; only the preview was written")
            return
        await write_text(code_path, code)
        logger.info(f"Applied to original: {code_path}")

    async def analyze_element(
        self,
        snapshot: ElementSnapshot,
        screenshot: bytes | None = None,
        context: ElementContext | None = None,
        mime_type: str = "image/png",
    ) -> ElementAnalysis:
        """
        Instant local analysis merged with a remote inspection.

        Only merged results with a successful remote part are cached, keyed
        by element fingerprint, remote mode and design-system version. A
        local-only result or a failed remote call is returned uncached.
        """
        mode = "image" if screenshot else "context" if context is not None else None
        key = None
        if mode is not None:
            key = fingerprint(
                snapshot.html or snapshot.model_dump_json(), mode, str(self.analyzer.design_system.version)
            )
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug(f"Analysis cache hit for <{snapshot.tag}> ({mode})")
                return ElementAnalysis.model_validate({**cached, "cached": True})

        local = self.analyzer.analyze(snapshot)

        inspection: InspectionResult | None = None
        if screenshot:
            inspection = await self.inspector.inspect_image(screenshot, mime_type)
        elif context is not None:
            inspection = await self.inspector.inspect_context(context)

        remote_ok = inspection is not None and inspection.success
        remote = inspection.data.defects if remote_ok else []
        analysis = ElementAnalysis(
            defects=merge_defects(local, remote),
            local_count=len(local),
            remote_count=len(remote),
            asset_prompt=inspection.data.asset_generation_prompt if remote_ok else None,
            remote_error=inspection.error if inspection is not None and not remote_ok else None,
        )

        if remote_ok:
            await self.cache.set(key, analysis.model_dump(mode="json"))
        elif inspection is not None:
            logger.warning(f"Remote analysis failed, returning local defects only: {inspection.error}")
        return analysis
