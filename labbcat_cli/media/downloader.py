"""
Downloads batches of time-bounded fragments (audio clips or converted transcript
excerpts) and writes each one to local storage.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Union

import aiofiles

from labbcat_cli.api.envelope import CallOutcome
from labbcat_cli.exceptions import TransportError
from labbcat_cli.models.fragment import BatchItem
from labbcat_cli.utils.path import fragment_file_name, resolve_download_dir

if TYPE_CHECKING:
    from labbcat_cli.api.client import LabbcatClient

log = logging.getLogger(__name__)


def mismatch_error(
    resource_ids: Sequence[Any], start_offsets: Sequence[Any], end_offsets: Sequence[Any]
) -> Optional[str]:
    """Describes a length mismatch between the three parallel inputs, if any."""
    if len(resource_ids) == len(start_offsets) == len(end_offsets):
        return None
    return (
        f"transcriptIds ({len(resource_ids)}), startOffsets ({len(start_offsets)}),"
        f" and endOffsets ({len(end_offsets)}) must be arrays of equal size."
    )


def split_matches(
    matches: Sequence[Mapping[str, Any]],
) -> tuple[list[Any], list[Any], list[Any]]:
    """
    Derives (transcript IDs, start offsets, end offsets) from search match
    records, using the utterance boundaries ``Line`` and ``LineEnd``.
    """
    return (
        [m.get("Transcript") for m in matches],
        [m.get("Line") for m in matches],
        [m.get("LineEnd") for m in matches],
    )


class FragmentDownloader:
    """
    Fetches fragments one at a time, in input order.

    Results are positional: element ``i`` of the result list is the local path
    of fragment ``i``, or None if that fragment failed. Individual failures are
    collected into one error list instead of aborting the batch.
    """

    def __init__(self, client: "LabbcatClient"):
        self.client = client

    async def download_batch(
        self,
        call: str,
        url: str,
        resource_ids: Sequence[str],
        start_offsets: Sequence[Any],
        end_offsets: Sequence[Any],
        *,
        accept: str,
        extra_params: Optional[Mapping[str, Any]] = None,
        directory: Optional[Union[str, Path]] = None,
        extension: str = "",
    ) -> CallOutcome:
        """
        Downloads every fragment and reports them together.

        Args:
            call: The API function name reported in the outcome.
            url: The fragment endpoint.
            resource_ids: Transcript IDs, one per fragment.
            start_offsets: Start offsets in seconds, one per fragment.
            end_offsets: End offsets in seconds, one per fragment.
            accept: The media type to request.
            extra_params: Query parameters sent with every fragment request.
            directory: Where to save files; None for the system temporary directory.
            extension: Appended to synthesized file names.

        Returns:
            A CallOutcome whose result has exactly one entry per input fragment.
        """
        error = mismatch_error(resource_ids, start_offsets, end_offsets)
        if error:
            return CallOutcome(None, [error], None, call)

        try:
            target_dir = await asyncio.to_thread(resolve_download_dir, directory)
        except OSError as e:
            return CallOutcome(
                None, [f"Could not create directory {directory}: {e}"], None, call
            )

        self.client._diag(
            f"{call}({len(resource_ids)} fragments, {dict(extra_params or {})}, {target_dir})"
        )

        items = [
            BatchItem(i, resource_ids[i], start_offsets[i], end_offsets[i])
            for i in range(len(resource_ids))
        ]
        for item in items:
            await self._download_item(item, url, accept, extra_params, target_dir, extension)

        errors = [item.error for item in items if item.error]
        return CallOutcome(
            [item.local_path for item in items], errors or None, None, call
        )

    async def _download_item(
        self,
        item: BatchItem,
        url: str,
        accept: str,
        extra_params: Optional[Mapping[str, Any]],
        target_dir: Path,
        extension: str,
    ) -> None:
        params = dict(extra_params or {})
        params.update(id=item.resource_id, start=item.start_offset, end=item.end_offset)

        try:
            response = await self.client.fetch_binary(url, params, accept)
        except TransportError as e:
            item.error = f"Could not get fragment {item.index}: {e}"
            log.debug(item.error)
            return

        file_name = response.filename or fragment_file_name(
            item.resource_id, item.start_offset, item.end_offset, extension
        )
        file_path = os.path.join(target_dir, file_name)
        try:
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(response.content)
        except OSError as e:
            item.error = f"Could not save fragment {item.index}: {e}"
            log.debug(item.error)
            return

        item.local_path = file_path
        self.client._diag(f"wrote file {file_path}")
