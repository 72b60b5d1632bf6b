"""
Read-only ("view" permission) operations on a LaBB-CAT graph store, mirroring
the nzilbb.ag.IGraphStoreQuery interface, plus searching and fragment export.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import aiofiles
import aiohttp

from labbcat_cli.exceptions import TransportError
from labbcat_cli.media.downloader import FragmentDownloader, split_matches

from .client import as_list
from .envelope import CallOutcome

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


def normalize_search_pattern(pattern: Any) -> dict[str, Any]:
    """
    Expands the abbreviated search pattern forms into the full search matrix.

    Accepted forms include ``{"orthography": "ps.*"}`` (one column, a regular
    expression per layer), a list of such columns, and the full
    ``{"columns": [{"layers": {...}, "adj": 2}]}`` structure. The input is not
    modified.
    """
    pattern = copy.deepcopy(pattern)
    if not (isinstance(pattern, Mapping) and "columns" in pattern):
        pattern = {"columns": pattern}
    if not isinstance(pattern["columns"], list):
        pattern["columns"] = [pattern["columns"]]

    columns = []
    for column in pattern["columns"]:
        if "layers" not in column:
            column = {"layers": column}
        column["layers"] = {
            layer_id: {"pattern": match} if isinstance(match, str) else match
            for layer_id, match in column["layers"].items()
        }
        columns.append(column)
    pattern["columns"] = columns
    return dict(pattern)


def match_ids_of(matches: Iterable[Mapping[str, Any]]) -> list[str]:
    """Extracts the MatchId of each search result record."""
    return [match["MatchId"] for match in matches]


class ViewOperations:
    """Read-only store queries. Mixed into a LabbcatClient."""

    async def get_id(self) -> CallOutcome:
        """Gets the store's ID."""
        return await self.request("getId")

    async def get_layer_ids(self) -> CallOutcome:
        """Gets a list of layer IDs (annotation 'types')."""
        return await self.request("getLayerIds")

    async def get_layers(self) -> CallOutcome:
        return await self.request("getLayers")

    async def get_schema(self) -> CallOutcome:
        """Gets the layer schema."""
        return await self.request("getSchema")

    async def get_layer(self, layer_id: str) -> CallOutcome:
        return await self.request("getLayer", {"id": layer_id})

    async def get_corpus_ids(self) -> CallOutcome:
        return await self.request("getCorpusIds")

    async def get_participant_ids(self) -> CallOutcome:
        return await self.request("getParticipantIds")

    async def get_participant(self, participant_id: str) -> CallOutcome:
        """Gets a participant record, by name or annotation ID."""
        return await self.request("getParticipant", {"id": participant_id})

    async def count_matching_participant_ids(self, expression: str) -> CallOutcome:
        """
        Counts the participants matching an expression such as
        ``labels('corpus').includes('CC')``.
        """
        return await self.request(
            "countMatchingParticipantIds", {"expression": expression}
        )

    async def get_matching_participant_ids(
        self,
        expression: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> CallOutcome:
        return await self.request(
            "getMatchingParticipantIds",
            {
                "expression": expression,
                "pageLength": page_length,
                "pageNumber": page_number,
            },
        )

    async def count_matching_transcript_ids(self, expression: str) -> CallOutcome:
        return await self.request(
            "countMatchingTranscriptIds", {"expression": expression}
        )

    async def get_matching_transcript_ids(
        self,
        expression: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
        order: Optional[str] = None,
    ) -> CallOutcome:
        """
        Gets the IDs of transcripts matching an expression such as
        ``my('corpus').label == 'CC'``, optionally paged and ordered.
        """
        return await self.request(
            "getMatchingTranscriptIds",
            {
                "expression": expression,
                "pageLength": page_length,
                "pageNumber": page_number,
                "order": order,
            },
        )

    async def count_annotations(self, transcript_id: str, layer_id: str) -> CallOutcome:
        return await self.request(
            "countAnnotations", {"id": transcript_id, "layerId": layer_id}
        )

    async def get_annotations(
        self,
        transcript_id: str,
        layer_id: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> CallOutcome:
        return await self.request(
            "getAnnotations",
            {
                "id": transcript_id,
                "layerId": layer_id,
                "pageLength": page_length,
                "pageNumber": page_number,
            },
        )

    async def count_matching_annotations(self, expression: str) -> CallOutcome:
        return await self.request(
            "countMatchingAnnotations", {"expression": expression}
        )

    async def get_matching_annotations(
        self,
        expression: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> CallOutcome:
        return await self.request(
            "getMatchingAnnotations",
            {
                "expression": expression,
                "pageLength": page_length,
                "pageNumber": page_number,
            },
        )

    async def get_transcript_ids(self) -> CallOutcome:
        return await self.request("getTranscriptIds")

    async def get_transcript_ids_in_corpus(self, corpus_id: str) -> CallOutcome:
        return await self.request("getTranscriptIdsInCorpus", {"id": corpus_id})

    async def get_transcript_ids_with_participant(
        self, participant_id: str
    ) -> CallOutcome:
        return await self.request(
            "getTranscriptIdsWithParticipant", {"id": participant_id}
        )

    async def get_transcript(
        self, transcript_id: str, layer_ids: Optional[Sequence[str]] = None
    ) -> CallOutcome:
        """Gets a transcript with only the given layers (all layers if None)."""
        return await self.request(
            "getTranscript", {"id": transcript_id, "layerId": as_list(layer_ids)}
        )

    async def get_anchors(
        self, transcript_id: str, anchor_ids: Sequence[str]
    ) -> CallOutcome:
        return await self.request(
            "getAnchors", {"id": transcript_id, "anchorIds": as_list(anchor_ids)}
        )

    async def get_media_tracks(self) -> CallOutcome:
        return await self.request("getMediaTracks")

    async def get_available_media(self, transcript_id: str) -> CallOutcome:
        return await self.request("getAvailableMedia", {"id": transcript_id})

    async def get_episode_documents(self, transcript_id: str) -> CallOutcome:
        return await self.request("getEpisodeDocuments", {"id": transcript_id})

    async def get_media(
        self,
        transcript_id: str,
        track_suffix: str,
        mime_type: str,
        start_offset: Optional[float] = None,
        end_offset: Optional[float] = None,
    ) -> CallOutcome:
        """Gets a URL for the given media track, or a sample of it."""
        return await self.request(
            "getMedia",
            {
                "id": transcript_id,
                "trackSuffix": track_suffix,
                "mimeType": mime_type,
                "startOffset": start_offset,
                "endOffset": end_offset,
            },
        )

    # Searching

    async def search(
        self,
        pattern: Any,
        participant_ids: Optional[Sequence[str]] = None,
        transcript_types: Optional[Sequence[str]] = None,
        main_participant: bool = True,
        aligned: bool = False,
        matches_per_transcript: Optional[int] = None,
    ) -> CallOutcome:
        """
        Starts a search for tokens matching the given pattern.

        Args:
            pattern: The search matrix, or one of its abbreviated forms
                (see :func:`normalize_search_pattern`).
            participant_ids: Only search the utterances of these participants.
            transcript_types: Only search transcripts of these types.
            main_participant: Only search main-participant utterances.
            aligned: Only match words with an alignment confidence of at least 50.
            matches_per_transcript: Maximum matches per transcript, or None for all.

        Returns:
            An outcome whose result has a ``threadId`` identifying the search
            task, for use with wait_for_task and get_matches.
        """
        parameters = {
            "command": "search",
            "searchJson": json.dumps(normalize_search_pattern(pattern)),
            "words_context": 0,
            "only_main_speaker": main_participant,
            "only_aligned": aligned,
            "matches_per_transcript": matches_per_transcript,
            "participant_id": as_list(participant_ids),
            "transcript_type": as_list(transcript_types),
        }
        return await self.request("search", parameters, self.base_url + "search")

    async def get_matches(
        self,
        task_id: str,
        words_context: int = 0,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> CallOutcome:
        """
        Gets the tokens matched by a search task.

        The result has a ``name`` and a list of ``matches``, each with
        ``MatchId``, ``Transcript``, ``Participant``, ``Corpus``, ``Line``,
        ``LineEnd``, ``BeforeMatch``, ``Text`` and ``AfterMatch``.
        """
        return await self.request(
            "getMatches",
            {
                "threadId": task_id,
                "words_context": words_context or 0,
                "pageLength": page_length,
                "pageNumber": page_number,
            },
            self.base_url + "resultsStream",
        )

    async def get_match_annotations(
        self,
        match_ids: Sequence[str],
        layer_ids: Sequence[str],
        target_offset: int = 0,
        annotations_per_layer: int = 1,
    ) -> CallOutcome:
        """
        Gets annotations on the given layers for search results.

        The result is a list with one row per match ID, each containing
        ``len(layer_ids) * annotations_per_layer`` annotations.
        """
        form = aiohttp.FormData()
        form.add_field("targetOffset", str(target_offset or 0))
        form.add_field("annotationsPerLayer", str(annotations_per_layer or 1))
        form.add_field("csvFieldDelimiter", ",")
        form.add_field("targetColumn", "0")
        form.add_field("copyColumns", "false")
        for layer_id in layer_ids:
            form.add_field("layer", layer_id)

        csv = "MatchId\n" + "\n".join(match_ids)
        form.add_field(
            "uploadfile",
            csv.encode("utf-8"),
            filename="uploadfile.csv",
            content_type="text/csv",
        )
        return await self.post_form(
            "getMatchAnnotations", self.base_url + "api/getMatchAnnotations", form
        )

    async def get_match_annotations_for_matches(
        self,
        matches: Sequence[Mapping[str, Any]],
        layer_ids: Sequence[str],
        target_offset: int = 0,
        annotations_per_layer: int = 1,
    ) -> CallOutcome:
        """As get_match_annotations, taking match records from get_matches."""
        return await self.get_match_annotations(
            match_ids_of(matches), layer_ids, target_offset, annotations_per_layer
        )

    # Fragments

    async def get_sound_fragments(
        self,
        transcript_ids: Sequence[str],
        start_offsets: Sequence[float],
        end_offsets: Sequence[float],
        sample_rate: Optional[int] = None,
        directory: Optional[PathLike] = None,
    ) -> CallOutcome:
        """
        Downloads WAV sound fragments.

        Returns:
            An outcome whose result lists one file path per fragment, with None
            for fragments that could not be downloaded or saved. Files written to
            the temporary directory should be moved or deleted by the caller.
        """
        return await FragmentDownloader(self).download_batch(
            "getSoundFragments",
            self.base_url + "soundfragment",
            transcript_ids,
            start_offsets,
            end_offsets,
            accept="audio/wav",
            extra_params={"sampleRate": sample_rate},
            directory=directory,
            extension=".wav",
        )

    async def get_sound_fragments_for_matches(
        self,
        matches: Sequence[Mapping[str, Any]],
        sample_rate: Optional[int] = None,
        directory: Optional[PathLike] = None,
    ) -> CallOutcome:
        """As get_sound_fragments, using the utterance boundaries of match records."""
        return await self.get_sound_fragments(
            *split_matches(matches), sample_rate=sample_rate, directory=directory
        )

    async def get_fragments(
        self,
        transcript_ids: Sequence[str],
        start_offsets: Sequence[float],
        end_offsets: Sequence[float],
        layer_ids: Sequence[str],
        mime_type: str,
        directory: Optional[PathLike] = None,
    ) -> CallOutcome:
        """
        Downloads transcript fragments in a given format, e.g.
        ``text/praat-textgrid`` for Praat TextGrids.
        """
        return await FragmentDownloader(self).download_batch(
            "getFragments",
            self.base_url + "convertfragment",
            transcript_ids,
            start_offsets,
            end_offsets,
            accept=mime_type,
            extra_params={"mimeType": mime_type, "layerId": as_list(layer_ids)},
            directory=directory,
        )

    async def get_fragments_for_matches(
        self,
        matches: Sequence[Mapping[str, Any]],
        layer_ids: Sequence[str],
        mime_type: str,
        directory: Optional[PathLike] = None,
    ) -> CallOutcome:
        """As get_fragments, using the utterance boundaries of match records."""
        return await self.get_fragments(
            *split_matches(matches), layer_ids, mime_type, directory=directory
        )

    # Attribute exports

    async def get_transcript_attributes(
        self,
        transcript_ids: Sequence[str],
        layer_ids: Sequence[str],
        file_name: PathLike,
    ) -> CallOutcome:
        """
        Saves transcript attribute values as CSV.

        Returns:
            An outcome whose result is ``file_name``, or None if the export failed.
        """
        parameters = {
            "todo": "export",
            "exportType": "csv",
            "layer": ["graph", *as_list(layer_ids)],
            "id": as_list(transcript_ids),
        }
        return await self._export_csv(
            "getTranscriptAttributes",
            self.base_url + "transcripts",
            parameters,
            file_name,
            "Could not get transcript attributes",
        )

    async def get_participant_attributes(
        self,
        participant_ids: Sequence[str],
        layer_ids: Sequence[str],
        file_name: PathLike,
    ) -> CallOutcome:
        """Saves participant attribute values as CSV."""
        parameters = {
            "type": "participant",
            "content-type": "text/csv",
            "csvFieldDelimiter": ",",
            "layer": as_list(layer_ids),
            "participantId": as_list(participant_ids),
        }
        return await self._export_csv(
            "getParticipantAttributes",
            self.base_url + "participantsExport",
            parameters,
            file_name,
            "Could not get participant attributes",
        )

    async def _export_csv(
        self,
        call: str,
        url: str,
        parameters: Mapping[str, Any],
        file_name: PathLike,
        failure: str,
    ) -> CallOutcome:
        try:
            response = await self.fetch_binary(url, parameters, "text/csv")
        except TransportError as e:
            return CallOutcome(None, [f"{failure}: {e}"], None, call)

        try:
            async with aiofiles.open(file_name, "wb") as f:
                await f.write(response.content)
        except OSError as e:
            log.debug(f"{call} could not write {file_name}: {e}")
            return CallOutcome(None, [f"{failure}: {e}"], None, call)

        self._diag(f"{call} wrote file {file_name}")
        return CallOutcome(str(file_name), None, None, call)


__all__ = [
    "ViewOperations",
    "match_ids_of",
    "normalize_search_pattern",
]
