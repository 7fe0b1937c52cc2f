"""Renderer interface."""

from typing import List


class Renderer:
    """Turns the DONE results of a run into one artifact."""

    name: str = ""
    extension: str = "txt"

    def render(self, results: List) -> str:
        raise NotImplementedError

    @staticmethod
    def visible(results: List) -> List:
        """Feeds worth showing: those with at least one new item."""
        return [r for r in results if r.items]
