"""
Pydantic models for a fetched RSS document.
These only live for one fetch cycle, between the fetcher and the ingestion pipeline.
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, field_validator


def _clean_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


class RssItem(BaseModel):
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""

    @field_validator("title", "link", "description", "pub_date", mode="before")
    @classmethod
    def _clean(cls, value: object) -> str:
        return _clean_text(value)


class RssChannel(BaseModel):
    title: str = ""
    link: str = ""
    description: str = ""
    items: List[RssItem] = []

    @field_validator("title", "link", "description", mode="before")
    @classmethod
    def _clean(cls, value: object) -> str:
        return _clean_text(value)


class RawFeedDocument(BaseModel):
    channel: RssChannel

    @property
    def items(self) -> List[RssItem]:
        return self.channel.items
