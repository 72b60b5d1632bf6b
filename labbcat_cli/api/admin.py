"""
Administration ("admin" permission) operations on corpus records.
"""

from typing import Optional

from .envelope import CallOutcome


class AdminOperations:
    """
    Corpus record CRUD against ``<base>/api/admin/corpora``. Mixed into a
    LabbcatClient alongside EditOperations, whose store edit URL it moves to
    the admin store.
    """

    EDIT_STORE_PATH = "api/admin/store/"

    @property
    def corpora_url(self) -> str:
        return self.base_url + "api/admin/corpora"

    async def create_corpus(
        self, corpus_name: str, corpus_language: str, corpus_description: str
    ) -> CallOutcome:
        """
        Creates a new corpus record.

        Args:
            corpus_name: The name/ID of the corpus.
            corpus_language: The ISO 639-1 code for the default language.
            corpus_description: The description of the corpus.

        Returns:
            An outcome whose result is a copy of the corpus record, including
            ``corpus_id``, the database key for the record.
        """
        return await self.request(
            "corpora",
            url=self.corpora_url,
            method="POST",
            json_body={
                "corpus_name": corpus_name,
                "corpus_language": corpus_language,
                "corpus_description": corpus_description,
            },
        )

    async def read_corpora(
        self, page: Optional[int] = None, page_length: Optional[int] = None
    ) -> CallOutcome:
        """
        Reads a list of corpus records.

        Args:
            page: The zero-based page of records to return, or None for all records.
            page_length: The page length (the server defaults to 20).
        """
        return await self.request("corpora", {"p": page, "l": page_length}, self.corpora_url)

    async def update_corpus(
        self,
        corpus_id: int,
        corpus_name: str,
        corpus_language: str,
        corpus_description: str,
    ) -> CallOutcome:
        return await self.request(
            "corpora",
            url=self.corpora_url,
            method="PUT",
            json_body={
                "corpus_id": corpus_id,
                "corpus_name": corpus_name,
                "corpus_language": corpus_language,
                "corpus_description": corpus_description,
            },
        )

    async def delete_corpus(self, corpus_id: int) -> CallOutcome:
        """Deletes an existing corpus record."""
        return await self.request(
            "corpora", url=f"{self.corpora_url}/{corpus_id}", method="DELETE"
        )
