"""Seed the course catalog from a JSON file.

The file describes one course and its ordered hierarchy. Sequence numbers
are assigned from list order, starting at 1:

    {
      "title": "Farmacologia Basica",
      "description": "...",
      "workload": 20,
      "lessons": [
        {
          "title": "Introducao",
          "parts": [
            {
              "title": "Boas-vindas",
              "video_url": "https://...",
              "tests": [
                {"question": "...", "alternatives": ["a", "b"], "correct_alternative": 0}
              ]
            }
          ]
        }
      ]
    }

Usage:
    cd api && uv run python -m scripts.seed_catalog path/to/course.json
"""

import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path
from uuid import UUID, uuid4

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import orjson
import structlog

from src.config.settings import get_settings
from src.core.database import init_async_cassandra, shutdown_async_cassandra


logger = structlog.get_logger(__name__)


INSERT_COURSE = """
    INSERT INTO {keyspace}.courses
    (id, title, description, thumbnail_url, workload, created_at, updated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s)
"""

INSERT_LESSON = """
    INSERT INTO {keyspace}.lessons_by_course
    (course_id, seq_num, id, title, description)
    VALUES (%s, %s, %s, %s, %s)
"""

INSERT_PART = """
    INSERT INTO {keyspace}.parts_by_lesson
    (lesson_id, seq_num, id, title, description, video_url)
    VALUES (%s, %s, %s, %s, %s, %s)
"""

INSERT_TEST = """
    INSERT INTO {keyspace}.tests_by_part
    (part_id, seq_num, id, question, alternatives, correct_alternative)
    VALUES (%s, %s, %s, %s, %s, %s)
"""


async def seed_course(session, keyspace: str, data: dict) -> tuple[UUID, int]:
    """Insert one course and its hierarchy.

    Returns:
        Tuple of (course_id, total tests inserted)
    """
    now = datetime.now(UTC)
    course_id = uuid4()
    tests_count = 0

    await session.aexecute(
        INSERT_COURSE.format(keyspace=keyspace),
        [
            course_id,
            data["title"],
            data.get("description"),
            data.get("thumbnail_url"),
            data.get("workload"),
            now,
            now,
        ],
    )

    for lesson_seq, lesson in enumerate(data.get("lessons", []), start=1):
        lesson_id = uuid4()
        await session.aexecute(
            INSERT_LESSON.format(keyspace=keyspace),
            [course_id, lesson_seq, lesson_id, lesson["title"], lesson.get("description")],
        )

        for part_seq, part in enumerate(lesson.get("parts", []), start=1):
            part_id = uuid4()
            await session.aexecute(
                INSERT_PART.format(keyspace=keyspace),
                [
                    lesson_id,
                    part_seq,
                    part_id,
                    part["title"],
                    part.get("description"),
                    part.get("video_url"),
                ],
            )

            for test_seq, test in enumerate(part.get("tests", []), start=1):
                await session.aexecute(
                    INSERT_TEST.format(keyspace=keyspace),
                    [
                        part_id,
                        test_seq,
                        uuid4(),
                        test["question"],
                        test.get("alternatives", []),
                        test.get("correct_alternative"),
                    ],
                )
                tests_count += 1

    return course_id, tests_count


async def run_seed(path: Path) -> None:
    """Load the JSON file and seed it."""
    settings = get_settings()
    data = orjson.loads(path.read_bytes())

    logger.info("seed_starting", file=str(path), keyspace=settings.cassandra_keyspace)

    session = await init_async_cassandra()
    try:
        course_id, tests_count = await seed_course(
            session, settings.cassandra_keyspace, data
        )
        logger.info(
            "seed_completed",
            course_id=str(course_id),
            lessons=len(data.get("lessons", [])),
            tests=tests_count,
        )
    finally:
        await shutdown_async_cassandra()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python -m scripts.seed_catalog <course.json>")
        sys.exit(1)
    asyncio.run(run_seed(Path(sys.argv[1])))
