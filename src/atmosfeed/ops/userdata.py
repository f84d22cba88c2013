"""
Userdata export and deletion.

The export is all-or-nothing: the structured snapshot and every classifier
blob are fetched first (blobs concurrently, bounded by a semaphore), and
artifacts are only handed back once every fetch has succeeded.

Deleting userdata only clears the registry. Feed records on the network are
left alone and must be unpublished beforehand if they should go too. A
successful deletion logs the session out.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from atmosfeed.clients.registry import RegistryClient
from atmosfeed.core.errors import AuthenticationError, ResolutionError
from atmosfeed.core.logging import get_logger
from atmosfeed.core.models import Artifact, Session
from atmosfeed.ops.result import ErrorChannel, OperationResult, start_timer
from atmosfeed.ops.session import logout, report_failure

logger = get_logger(__name__)

STRUCTURED_ARTIFACT = "atmosfeed.json"
CLASSIFIER_DIR = "blobs/classifiers"
CLASSIFIER_SUFFIX = ".scale"


async def _fetch_classifiers(
    registry: RegistryClient,
    rkeys: list[str],
    concurrency: int,
) -> list[Artifact]:
    sem = asyncio.Semaphore(concurrency)

    async def _fetch_one(rkey: str) -> Artifact:
        async with sem:
            blob = await registry.get_classifier_blob(rkey)
        return Artifact(name=f"{CLASSIFIER_DIR}/{rkey}{CLASSIFIER_SUFFIX}", content=blob)

    results = await asyncio.gather(*[_fetch_one(rkey) for rkey in rkeys], return_exceptions=True)

    failed = [(rkey, res) for rkey, res in zip(rkeys, results, strict=True) if isinstance(res, BaseException)]
    if failed:
        for rkey, exc in failed:
            logger.warning("userdata.classifier_fetch_failed", rkey=rkey, error=str(exc))
        # A rejected credential outranks the aggregate so the session is torn down
        for _, exc in failed:
            if isinstance(exc, AuthenticationError):
                raise exc
        first = failed[0][1]
        raise ResolutionError(
            f"Could not export classifiers for {', '.join(rkey for rkey, _ in failed)}",
            cause=first if isinstance(first, Exception) else None,
        ).with_context(operation="export_userdata", failed=[rkey for rkey, _ in failed])

    return [res for res in results if isinstance(res, Artifact)]


async def export_userdata(
    registry: RegistryClient,
    session: Session,
    *,
    concurrency: int = 4,
    on_error: ErrorChannel | None = None,
) -> OperationResult[list[Artifact]]:
    """Collect the user's registry data as downloadable artifacts."""
    timer = start_timer()

    try:
        structured = await registry.get_structured_userdata()

        snapshot = {
            "did": session.did,
            "service": session.service,
            "structured": structured.model_dump(mode="json", by_alias=True),
        }
        artifacts = [
            Artifact(
                name=STRUCTURED_ARTIFACT,
                content=json.dumps(snapshot, indent=2).encode(),
                media_type="application/json",
            )
        ]

        rkeys = [feed.rkey for feed in structured.feeds]
        artifacts.extend(await _fetch_classifiers(registry, rkeys, concurrency))
    except Exception as exc:
        return await report_failure(session, exc, on_error, operation="export_userdata", elapsed_ms=timer.elapsed_ms)

    logger.info("userdata.export_complete", artifacts=len(artifacts), classifiers=len(rkeys))
    return OperationResult.ok(artifacts, elapsed_ms=timer.elapsed_ms)


def write_artifacts(artifacts: list[Artifact], out_dir: Path | str) -> list[Path]:
    """Write artifacts below *out_dir*, creating subdirectories as needed."""
    root = Path(out_dir)
    written = []
    for artifact in artifacts:
        path = root / artifact.name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(artifact.content)
        written.append(path)
    return written


async def delete_userdata(
    registry: RegistryClient,
    session: Session,
    *,
    on_error: ErrorChannel | None = None,
) -> OperationResult[None]:
    """Delete everything the registry holds for this account, then log out."""
    timer = start_timer()

    try:
        await registry.delete_userdata()
    except Exception as exc:
        return await report_failure(session, exc, on_error, operation="delete_userdata", elapsed_ms=timer.elapsed_ms)

    logger.info("userdata.deleted", did=session.did)
    await logout(session)
    return OperationResult.ok(None, elapsed_ms=timer.elapsed_ms)


__all__ = [
    "STRUCTURED_ARTIFACT",
    "export_userdata",
    "write_artifacts",
    "delete_userdata",
]
