"""Static topic catalog per industry.

The catalog is configuration: DEFAULT_TOPICS ships with the package and a JSON
file at settings.TOPIC_CATALOG_PATH ({"Finance": ["...", ...], ...}) replaces it.
"""
import json
import random
from pathlib import Path
from typing import Dict, List, Optional

from industry_rag.errors import ValidationError

DEFAULT_TOPICS: Dict[str, List[str]] = {
    "Finance": [
        "Opening a savings or current account",
        "Personal loan eligibility and documents",
        "Requesting an account statement",
        "Debit and credit card services",
        "Online and mobile banking",
        "Fixed deposits and interest rates",
        "Reporting a lost or stolen card",
        "Home loan application process",
    ],
    "Education": [
        "Course registration and enrollment",
        "Admission requirements",
        "Grading policy and transcripts",
        "Scholarships and financial aid",
        "Student support services",
        "Exam schedules and rules",
        "Library and learning resources",
    ],
    "Healthcare": [
        "Booking and rescheduling appointments",
        "Accessing medical records",
        "Health insurance coverage",
        "Prescription refills",
        "Emergency services",
        "Patient rights and privacy",
        "Vaccination programs",
    ],
}


class TopicCatalog:
    """Topics per industry; sampling draws from a caller-supplied Random."""

    def __init__(self, topics: Optional[Dict[str, List[str]]] = None):
        self._topics = {k: list(v) for k, v in (topics or DEFAULT_TOPICS).items()}

    @classmethod
    def from_file(cls, path: str) -> "TopicCatalog":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
            raise ValidationError(f"Topic catalog {path} must map industries to lists of topics")
        return cls({str(k): [str(t) for t in v] for k, v in data.items()})

    def topics_for(self, industry: str) -> List[str]:
        return list(self._topics.get(industry, []))

    def sample(self, industry: str, k: int, rng: random.Random) -> List[str]:
        """Draw up to k distinct topics for the industry using rng."""
        topics = self.topics_for(industry)
        return rng.sample(topics, min(k, len(topics)))
