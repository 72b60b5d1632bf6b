"""
Read/write ("edit" permission) operations: deleting transcripts and uploading
new or updated transcripts with their media.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Sequence, Union

import aiofiles
import aiohttp

from .envelope import CallOutcome

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

UPLOAD_PATH = "edit/transcript/new"


async def _read_upload(path: PathLike) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


class EditOperations:
    """Store modification calls. Mixed into a LabbcatClient."""

    EDIT_STORE_PATH = "api/edit/store/"

    @property
    def store_edit_url(self) -> str:
        return self.base_url + self.EDIT_STORE_PATH

    async def delete_transcript(self, transcript_id: str) -> CallOutcome:
        """Deletes the given transcript, and all associated media, from the store."""
        return await self.request(
            "deleteTranscript",
            {"id": transcript_id},
            method="POST",
            store_url=self.store_edit_url,
        )

    async def new_transcript(
        self,
        transcript: PathLike,
        media: Optional[Union[PathLike, Sequence[PathLike]]] = None,
        media_suffix: str = "",
        transcript_type: Optional[str] = None,
        corpus: Optional[str] = None,
        episode: Optional[str] = None,
    ) -> CallOutcome:
        """
        Uploads a new transcript, with optional media files.

        Returns:
            An outcome whose result is the ID of the annotation generation task
            the server started; follow it with wait_for_task.
        """
        form = aiohttp.FormData()
        form.add_field("todo", "new")
        form.add_field("auto", "true")
        if transcript_type:
            form.add_field("transcript_type", transcript_type)
        if corpus:
            form.add_field("corpus", corpus)
        if episode:
            form.add_field("episode", episode)

        if media is None:
            media_files = []
        elif isinstance(media, (str, Path)):
            media_files = [media]
        else:
            media_files = list(media)

        return await self._upload_transcript(
            "newTranscript", form, transcript, media_files, media_suffix or ""
        )

    async def update_transcript(self, transcript: PathLike) -> CallOutcome:
        """
        Uploads a new version of an existing transcript.

        Returns:
            An outcome whose result is the ID of the annotation generation task.
        """
        form = aiohttp.FormData()
        form.add_field("todo", "update")
        form.add_field("auto", "true")
        return await self._upload_transcript("updateTranscript", form, transcript, [], "")

    async def _upload_transcript(
        self,
        call: str,
        form: aiohttp.FormData,
        transcript: PathLike,
        media_files: Sequence[PathLike],
        media_suffix: str,
    ) -> CallOutcome:
        transcript_name = os.path.basename(transcript)
        self._diag(f"{call}({transcript}, {list(map(str, media_files))}, {media_suffix!r})")

        try:
            content = await _read_upload(transcript)
        except OSError as e:
            log.debug(f"Could not read {transcript}: {e}")
            return CallOutcome(
                None, [f"Invalid transcript: {transcript_name}"], None, call, transcript_name
            )
        form.add_field("uploadfile1_0", content, filename=transcript_name)

        for n, media_file in enumerate(media_files, start=1):
            media_name = os.path.basename(media_file)
            try:
                content = await _read_upload(media_file)
            except OSError as e:
                log.debug(f"Could not read {media_file}: {e}")
                return CallOutcome(
                    None, [f"Invalid media: {media_name}"], None, call, transcript_name
                )
            form.add_field(f"uploadmedia{media_suffix}{n}", content, filename=media_name)

        outcome = await self.post_form(
            call, self.base_url + UPLOAD_PATH, form, item_id=transcript_name
        )
        # the result maps the uploaded file name to its task ID
        if isinstance(outcome.result, dict):
            outcome = outcome._replace(result=outcome.result.get(transcript_name))
        return outcome
