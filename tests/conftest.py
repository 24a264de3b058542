"""Shared fixtures for the vision-renamer tests."""

from pathlib import Path
from typing import List, Union

import pytest
from PIL import Image


class StubVisionClient:
    """Hands out scripted suggestions in call order; exception replies are raised."""

    def __init__(self, replies: List[Union[str, Exception]]):
        self.replies = list(replies)
        self.calls = []

    async def describe_image(self, image_bytes: bytes, mime_type: str, model_id: str) -> str:
        self.calls.append((image_bytes, mime_type, model_id))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def stub_client():
    return StubVisionClient


@pytest.fixture
def make_image(tmp_path: Path):
    def _make(name: str, size=(64, 48), color="blue", directory: Path = tmp_path) -> Path:
        path = directory / name
        Image.new("RGB", size, color).save(path)
        return path

    return _make
