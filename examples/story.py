#!/usr/bin/env python3
"""Write a story premise, edit it a few times, then outline the chapters.

Usage:
    OPENAI_API_KEY=... python examples/story.py "a lighthouse keeper who collects storms"
"""

import asyncio
import sys
from typing import List

from aifunctions import (
    AgentState,
    Settings,
    ai_function,
    done,
    drive,
    prompt,
    recoverable_err,
)
from aifunctions.utils.logger import setup_logging

MIN_OUTLINE_LENGTH = 80


class Story(AgentState):
    def __init__(self, topic: str, premise_edits: int = 3):
        self.topic = topic
        self.premise = ""
        self.premise_edits_remaining = premise_edits
        self.chapter_outlines: List[str] = []

    def initial(self):
        return prompt(
            "Write a high-level story premise about the following topic. "
            "Use it as inspiration, but liberally expand on it. Topic: {topic}",
            ["write_premise"],
            0.8,
            topic=self.topic,
        )

    @ai_function(description="Write a story premise", notes="Scratch notes where you ideate")
    def write_premise(self, notes: List[str], premise: str):
        for i, note in enumerate(notes):
            print(f"{i}. {note}")
        print(f"{premise}\n")

        self.premise = premise
        return prompt(
            "Liberally edit this story premise. Be detailed. Topic: {topic}\nPremise: {premise}",
            ["edit_premise"],
            0.5,
            topic=self.topic,
            premise=premise,
        )

    @ai_function(description="Edit a story premise", notes="Notes about what could be improved")
    def edit_premise(self, notes: List[str], rewritten_premise: str):
        for i, note in enumerate(notes):
            print(f"{i}. {note}")
        print(f"{rewritten_premise}\n")

        self.premise = rewritten_premise
        self.premise_edits_remaining -= 1

        if self.premise_edits_remaining <= 0:
            return prompt(
                "Write a detailed plot outline for each chapter of a story loosely based "
                "on this premise. Topic: {topic}\nPremise: {premise}",
                ["write_chapter_outlines"],
                0.5,
                topic=self.topic,
                premise=rewritten_premise,
            )
        return prompt(
            "Liberally edit the following story premise. Be detailed. Topic: {topic}\nPremise: {premise}",
            ["edit_premise"],
            0.5,
            topic=self.topic,
            premise=rewritten_premise,
        )

    @ai_function(description="Write chapter outlines")
    def write_chapter_outlines(self, outlines: List[str]):
        """Write chapter outlines.

        Args:
            outlines: List of detailed outlines for each chapter
        """
        for outline in outlines:
            # The model sometimes answers with bare chapter titles
            if len(outline) < MIN_OUTLINE_LENGTH:
                return recoverable_err(
                    f"Chapter outlines should be a few sentences at least, but this one was "
                    f"only {len(outline)} characters long: {outline}. "
                    "Write longer outlines for each chapter."
                )

        for outline in outlines:
            print(f"{outline}\n")
        self.chapter_outlines = outlines
        return done()


async def main(topic: str) -> int:
    settings = Settings()
    setup_logging(settings.log_level, settings.json_logs)

    result = await drive(Story(topic), settings=settings)
    if not result.ok:
        print(f"Failed ({result.failure_kind.value}): {result.error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    topic = " ".join(sys.argv[1:]) or (
        "an alternate history in which the Maya defeat the Spanish with advanced "
        "but historically plausible technology"
    )
    sys.exit(asyncio.run(main(topic)))
