"""Demo catalogue for local development."""

from __future__ import annotations

import structlog

from audiolearn.db import content_repository as content

logger = structlog.get_logger(__name__)

SAMPLE_AUDIO = "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-{n}.mp3"

DEMO_COURSE = {
    "name": "Risk Management Fundamentals",
    "description": "Learn the fundamentals of risk management in the insurance industry",
    "modules": [
        (
            "Module 1: Introduction to Risk",
            "Understanding basic risk concepts and terminology",
            [
                ("Chapter 1.1: What is Risk?", "Defining risk in the context of insurance", 369),
                ("Chapter 1.2: Types of Risk", "Exploring different categories of risk", 429),
                ("Chapter 1.3: Risk Management Framework", "Overview of the risk management process", 353),
            ],
        ),
        (
            "Module 2: Risk Assessment",
            "Methods and tools for assessing different types of risks",
            [
                ("Chapter 2.1: Risk Identification", "Techniques for identifying potential risks", 468),
                ("Chapter 2.2: Risk Analysis", "Analyzing probability and impact of risks", 399),
                ("Chapter 2.3: Risk Evaluation", "Prioritizing risks for treatment", 382),
            ],
        ),
        (
            "Module 3: Risk Mitigation",
            "Strategies for reducing and managing identified risks",
            [
                ("Chapter 3.1: Risk Control Strategies", "Methods for controlling and reducing risks", 423),
                ("Chapter 3.2: Risk Financing", "Financial strategies for managing risk", 411),
                ("Chapter 3.3: Monitoring and Review", "Continuous improvement in risk management", 397),
            ],
        ),
    ],
}


def seed_demo_content() -> int:
    """Insert the demo course unless any course exists.

    Returns:
        Number of chapters created (0 when skipped)
    """
    if content.list_courses(include_inactive=True):
        logger.info("seed.skipped", reason="courses_exist")
        return 0

    course = content.create_course(DEMO_COURSE["name"], description=DEMO_COURSE["description"])
    created = 0
    for module_index, (title, description, chapters) in enumerate(DEMO_COURSE["modules"], start=1):
        assignment = content.create_assignment(
            course.id, title, module_index, description=description
        )
        for chapter_index, (chapter_title, chapter_description, duration) in enumerate(chapters, start=1):
            created += 1
            content.create_chapter(
                assignment.id,
                chapter_title,
                SAMPLE_AUDIO.format(n=created),
                chapter_index,
                description=chapter_description,
                duration=duration,
            )

    logger.info("seed.completed", course_id=course.id, chapters=created)
    return created
