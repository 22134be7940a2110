#!/usr/bin/env python3
"""Create the HireFlow database schema and optionally load a small demo pipeline."""

import argparse
import json
import logging
from pathlib import Path

from config import get_config
from db.schema import init_db
from pipeline.directory import create_job_opening, register_candidate
from pipeline.services import build_services
from pipeline.stage_engine import StageTransitionEngine

DEMO_JOBS = [
    {
        "title": "Backend Engineer",
        "department": "Engineering",
        "location": "Bengaluru",
        "skills": "python, sql, docker",
        "description": "Build and run the services behind our hiring products.",
    },
    {
        "title": "Data Analyst",
        "department": "Analytics",
        "location": "Remote",
        "skills": "sql, excel, python",
        "description": "Turn pipeline data into weekly hiring reports.",
    },
]

DEMO_CANDIDATES = [
    {
        "name": "Asha Rao",
        "email": "asha.rao@example.com",
        "phone": "+91 98450 12345",
        "resume_text": "Python developer with 5 years experience building SQL-backed APIs in Docker.",
    },
    {
        "name": "Tomas Silva",
        "email": "tomas.silva@example.com",
        "phone": "+351 912 345 678",
        "resume_text": "Analyst, led reporting projects in Excel and SQL.",
    },
]


def parse_args():
    parser = argparse.ArgumentParser(description="Initialize the HireFlow SQLite database.")
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite DB path (default: HIREFLOW_DB or data/hireflow.db).",
    )
    parser.add_argument(
        "--seed-demo",
        action="store_true",
        help="Insert demo job openings, candidates and applications.",
    )
    return parser.parse_args()


def seed_demo(config) -> dict:
    services = build_services(config)
    engine = StageTransitionEngine(services)
    try:
        jobs = [create_job_opening(services, **job) for job in DEMO_JOBS]
        candidates = [register_candidate(services, **candidate) for candidate in DEMO_CANDIDATES]
        applications = [
            engine.create_application(candidate.id, job.id, actor="seed")
            for candidate, job in zip(candidates, jobs)
        ]
        engine.move_to_stage(applications[0].id, "screening", actor="seed")
        services.side_effects.drain()
    finally:
        services.side_effects.shutdown()

    return {
        "jobs": [job.id for job in jobs],
        "candidates": [candidate.id for candidate in candidates],
        "applications": [{"id": app.id, "reference_number": app.reference_number} for app in applications],
    }


def main():
    args = parse_args()
    config = get_config()
    config.setup_logging()
    if args.db:
        db_path = Path(args.db)
        config.db_path = db_path if db_path.is_absolute() else Path.cwd() / db_path

    db_path = init_db(config.get_db_path_str())
    logging.info(f"Schema ready at {db_path}")

    summary = {"db_path": str(db_path)}
    if args.seed_demo:
        summary["seeded"] = seed_demo(config)
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
