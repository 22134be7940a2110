"""Candidate and job opening records that applications point at."""

import logging
from typing import Any, Optional

from db.hiring_reader import fetch_candidate, fetch_job, get_connection
from db.hiring_writer import HiringWriter
from models.records import Candidate, JobOpening
from pipeline.services import HiringServices
from utils.validation import validate_email, validate_optional_text, validate_required_text

logger = logging.getLogger(__name__)


def register_candidate(
    services: HiringServices,
    name: Any,
    email: Any,
    phone: Any = None,
    resume_text: Any = None,
    resume_key: Any = None,
) -> Candidate:
    """Create a candidate, or refresh the one already registered under the email."""
    name = validate_required_text(name, "name", max_length=200)
    email = validate_email(email)
    phone = validate_optional_text(phone, "phone", max_length=40)
    resume_text = validate_optional_text(resume_text, "resume_text", max_length=100000)
    resume_key = validate_optional_text(resume_key, "resume_key", max_length=500)

    with HiringWriter(services.db_path) as writer:
        candidate_id = writer.upsert_candidate(
            name, email, services.now(), phone=phone, resume_text=resume_text, resume_key=resume_key
        )
        writer.commit()

    with get_connection(services.db_path) as conn:
        return fetch_candidate(conn, candidate_id)


def create_job_opening(
    services: HiringServices,
    title: Any,
    department: Any = None,
    location: Any = None,
    skills: Any = None,
    description: Optional[str] = None,
) -> JobOpening:
    title = validate_required_text(title, "title", max_length=200)
    department = validate_optional_text(department, "department", max_length=200)
    location = validate_optional_text(location, "location", max_length=200)
    skills = validate_optional_text(skills, "skills")
    description = validate_optional_text(description, "description", max_length=20000)

    with HiringWriter(services.db_path) as writer:
        job_id = writer.insert_job(
            title,
            services.now(),
            department=department,
            location=location,
            skills=skills,
            description=description,
        )
        writer.commit()

    logger.info("Job opening %s created: %s", job_id, title)
    with get_connection(services.db_path) as conn:
        return fetch_job(conn, job_id)
